"""noteserver daemon entry point.

Usage:
    noteserver --config ~/.config/noteserver.yml --address :8080
    noteserver --config ~/.config/noteserver.yml --mcp
"""

import argparse
import asyncio
import logging
import signal
import sys

from noteserver.auth import Authorizer
from noteserver.config import Config, ConfigError, load_config
from noteserver.core.registry import PluginRegistry
from noteserver.errors import PluginInitError
from noteserver.mcp_server import NoteServerMCP
from noteserver.rpc_server import RPCServer
from noteserver.services.clip import ClipService
from noteserver.services.key import KeyService
from noteserver.services.notes import NotesService
from noteserver.services.notify import NotifyService
from noteserver.services.user import UserService

logger = logging.getLogger("noteserver")


def build_registry() -> PluginRegistry:
    """Register the standard service plugins."""
    registry = PluginRegistry()
    registry.register("Clip", ClipService())
    registry.register("Notes", NotesService())
    registry.register("Notify", NotifyService())
    registry.register("User", UserService())
    registry.register("Key", KeyService())
    return registry


def setup_logging(debug: bool) -> None:
    # stdout carries the MCP protocol, so logs always go to stderr.
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if debug else logging.INFO,
        format="[noteserver] %(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_reload_handler(registry: PluginRegistry) -> None:
    """Make SIGHUP update every active plugin without blocking dispatch."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGHUP, registry.reload)
    except (NotImplementedError, AttributeError):
        logger.warning("SIGHUP reload is not supported on this platform")


async def serve(config: Config, registry: PluginRegistry, use_mcp: bool = False) -> None:
    surface = registry.compose(config)
    logger.info(f"Active plugins: {', '.join(registry.active) or '(none)'}")
    install_reload_handler(registry)

    if use_mcp:
        await NoteServerMCP(surface).run()
        return

    server = RPCServer(surface, Authorizer.from_config(config))
    await server.start(config.address)
    try:
        await server.serve_forever()
    finally:
        await server.stop()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="noteserver", description="Personal automation daemon")
    parser.add_argument("--config", default="", help="configuration file path")
    parser.add_argument("--address", default=None, help="listen address (host:port or socket path)")
    parser.add_argument("--mcp", action="store_true", help="serve MCP on stdio instead of JSON-RPC")
    parser.add_argument("--debug", action="store_true", default=None, help="enable debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    """Synchronous entry point for console script."""
    args = parse_args(argv)
    try:
        config = load_config(args.config, address=args.address, debug_log=args.debug)
    except ConfigError as e:
        sys.exit(f"noteserver: {e}")
    setup_logging(config.debug_log)

    if not args.mcp and not config.address:
        sys.exit("noteserver: a non-empty --address is required")

    try:
        asyncio.run(serve(config, build_registry(), use_mcp=args.mcp))
    except KeyboardInterrupt:
        logger.info("noteserver stopped")
    except PluginInitError as e:
        logger.critical(f"{e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
