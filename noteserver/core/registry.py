"""Plugin registry: composes service plugins into one dispatch surface."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from noteserver.config import Config
from noteserver.errors import (
    InvalidRequest,
    MethodNotFound,
    NotApplicable,
    PluginInitError,
    PluginRegistrationError,
)
from noteserver.models.schemas import to_wire

logger = logging.getLogger(__name__)


@dataclass
class Method:
    """One callable entry of a plugin's method table.

    If params is set, raw parameters are validated into that model and the
    handler receives the model instance; otherwise the handler takes no
    arguments.
    """

    handler: Callable[..., Awaitable[Any]]
    params: Optional[Type[BaseModel]] = None
    description: str = ""

    def input_schema(self) -> Dict[str, Any]:
        if self.params is None:
            return {"type": "object", "properties": {}}
        return self.params.model_json_schema(by_alias=True)

    async def call(self, params: Any = None) -> Any:
        if self.params is None:
            return await self.handler()
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise InvalidRequest("parameters must be an object")
        try:
            req = self.params.model_validate(params)
        except ValidationError as e:
            raise InvalidRequest(f"invalid parameters: {e.error_count()} error(s)", data=_errors(e)) from e
        return await self.handler(req)


def _errors(e: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
        for err in e.errors(include_url=False)
    ]


class Plugin:
    """Base class for service plugins.

    init is called once with the shared configuration and may raise
    NotApplicable to opt out. update may be called at any time afterwards to
    refresh internal state. methods returns the plugin's method table.
    """

    def init(self, config: Config) -> None:
        raise NotImplementedError

    def update(self) -> None:
        pass

    def methods(self) -> Dict[str, Method]:
        raise NotImplementedError


class DispatchSurface:
    """Method tables of the active plugins, keyed by service then method."""

    def __init__(self, services: Optional[Dict[str, Dict[str, Method]]] = None):
        self.services: Dict[str, Dict[str, Method]] = services or {}

    def __contains__(self, name: str) -> bool:
        try:
            self.lookup(name)
        except MethodNotFound:
            return False
        return True

    def names(self) -> List[str]:
        """Full names of all methods, as Service.Method, sorted."""
        return sorted(
            f"{service}.{method}"
            for service, table in self.services.items()
            for method in table
        )

    def lookup(self, name: str) -> Method:
        service, _, method = name.partition(".")
        table = self.services.get(service)
        if table is None or method not in table:
            raise MethodNotFound(f"method {name!r} not found")
        return table[method]

    async def call(self, name: str, params: Any = None) -> Any:
        """Invoke a method and return its result in wire form."""
        result = await self.lookup(name).call(params)
        return to_wire(result)


class PluginRegistry:
    """Owns the named plugins of one process."""

    def __init__(self):
        self._plugins: Dict[str, Plugin] = {}
        self._active: Dict[str, Plugin] = {}

    def register(self, name: str, plugin: Plugin) -> None:
        """Add plugin under name. Duplicate names and None are fatal."""
        if plugin is None:
            raise PluginRegistrationError(f"invalid nil plugin for {name!r}")
        if not name or "." in name:
            raise PluginRegistrationError(f"invalid plugin name {name!r}")
        old = self._plugins.get(name)
        if old is not None:
            raise PluginRegistrationError(
                f"duplicate registration for plugin {name!r}: {old!r}, {plugin!r}"
            )
        self._plugins[name] = plugin

    @property
    def registered(self) -> List[str]:
        return list(self._plugins)

    @property
    def active(self) -> List[str]:
        return list(self._active)

    def compose(self, config: Config) -> DispatchSurface:
        """Initialize every plugin and merge the active ones' method tables."""
        surface = DispatchSurface()
        for name, plugin in self._plugins.items():
            try:
                plugin.init(config)
            except NotApplicable as e:
                logger.info(f"Skipping inapplicable plugin {name!r}: {e}")
                continue
            except Exception as e:
                raise PluginInitError(f"initializing plugin {name!r}: {e}") from e
            self._active[name] = plugin
            surface.services[name] = dict(plugin.methods())
            logger.debug(f"Activated plugin {name!r}")
        return surface

    def reload(self) -> List["asyncio.Task"]:
        """Start an update of every active plugin, each in its own task.

        Failures are logged and do not affect other plugins. The tasks are
        returned so a caller may wait for them; the dispatch loop does not.
        """
        tasks = []
        for name, plugin in self._active.items():
            tasks.append(asyncio.create_task(self._update(name, plugin), name=f"update:{name}"))
        return tasks

    async def _update(self, name: str, plugin: Plugin) -> bool:
        try:
            await asyncio.to_thread(plugin.update)
        except Exception as e:
            logger.error(f"Updating plugin {name!r}: {e}")
            return False
        logger.debug(f"Updated plugin {name!r}")
        return True
