"""Bridge to the live system clipboard through helper programs."""

import logging
from typing import List

from noteserver.core.process import run_command

logger = logging.getLogger(__name__)


class SystemClipboard:
    """Reads and writes the OS clipboard with copy/paste helper commands."""

    def __init__(self, copy_command: List[str], paste_command: List[str]):
        self.copy_command = list(copy_command)
        self.paste_command = list(paste_command)

    async def get(self) -> bytes:
        """Return the current clipboard contents."""
        result = await run_command(self.paste_command)
        return result.stdout

    async def set(self, data: bytes) -> None:
        """Replace the clipboard contents with data."""
        await run_command(self.copy_command, input=data)
        logger.debug(f"Set system clipboard ({len(data)} bytes)")
