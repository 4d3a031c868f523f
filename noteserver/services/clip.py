"""Clip service: the system clipboard plus named clip storage."""

import logging
from typing import Dict, List, Optional

from noteserver.config import Config, expand_path
from noteserver.core.clipboard import SystemClipboard
from noteserver.core.registry import Method, Plugin
from noteserver.core.storage import ClipStorage
from noteserver.models.schemas import ClipClearRequest, ClipGetRequest, ClipSetRequest

logger = logging.getLogger(__name__)


class ClipService(Plugin):
    """Exposes ClipStorage as Clip.Set, Clip.Get, Clip.List and Clip.Clear."""

    def __init__(self, clipboard: Optional[SystemClipboard] = None):
        self._clipboard = clipboard
        self.storage: Optional[ClipStorage] = None

    def init(self, config: Config) -> None:
        clipboard = self._clipboard or SystemClipboard(
            config.clip.copy_command, config.clip.paste_command
        )
        self.storage = ClipStorage(clipboard, expand_path(config.clip.save_file))
        self.storage.load()

    def methods(self) -> Dict[str, Method]:
        return {
            "Set": Method(self.set, ClipSetRequest, "Set the clipboard and optionally store it under a tag"),
            "Get": Method(self.get, ClipGetRequest, "Read a stored clip or the live clipboard"),
            "List": Method(self.list, None, "List stored clip tags"),
            "Clear": Method(self.clear, ClipClearRequest, "Clear the live clipboard or remove a tag"),
        }

    async def set(self, req: ClipSetRequest) -> bool:
        return await self.storage.set(req.tag, req.save, req.data, req.allow_empty)

    async def get(self, req: ClipGetRequest) -> bytes:
        return await self.storage.get(req.tag, req.save, req.activate)

    async def list(self) -> List[str]:
        return await self.storage.list()

    async def clear(self, req: ClipClearRequest) -> bool:
        return await self.storage.clear(req.tag)
