"""Launch the configured editor on a file."""

import asyncio
import logging
import os
import shlex
from typing import List

from noteserver.config import EditConfig
from noteserver.errors import DelegateError

logger = logging.getLogger(__name__)


class Editor:
    """Runs the editor command line from the configuration."""

    def __init__(self, config: EditConfig):
        self.command = config.command
        self.touch_new = config.touch_new

    @property
    def defined(self) -> bool:
        return bool(self.command.strip())

    def argv(self, path: str) -> List[str]:
        try:
            args = shlex.split(self.command)
        except ValueError as e:
            raise DelegateError(f"invalid editor command {self.command!r}: {e}") from e
        if not args:
            raise DelegateError("no editor is defined")
        return args + [path]

    def _touch(self, path: str) -> None:
        if self.touch_new and not os.path.exists(path):
            try:
                with open(path, "a"):
                    pass
            except OSError as e:
                raise DelegateError(f"creating {path!r}: {e}") from e

    async def start(self, path: str) -> asyncio.subprocess.Process:
        """Start the editor on path, creating the file first if configured."""
        argv = self.argv(path)
        self._touch(path)
        try:
            proc = await asyncio.create_subprocess_exec(*argv)
        except OSError as e:
            raise DelegateError(f"starting editor {argv[0]!r}: {e}") from e
        logger.info(f"[pid={proc.pid}] Editing file {path!r}...")
        return proc

    async def edit(self, path: str, background: bool = False) -> None:
        """Edit path. Unless background is set, wait for the editor to exit.

        The editor is never killed on behalf of the caller; if the caller goes
        away, the exit status is still collected and logged.
        """
        proc = await self.start(path)
        if background:
            asyncio.create_task(self._reap(proc, "async"))
            return
        try:
            code = await proc.wait()
        except asyncio.CancelledError:
            asyncio.create_task(self._reap(proc, "abandoned"))
            raise
        logger.info(f"[pid={proc.pid}] Editor (sync) exited: {code}")
        if code != 0:
            raise DelegateError(f"editor exited with status {code}", data={"path": path})

    async def _reap(self, proc: asyncio.subprocess.Process, mode: str) -> None:
        code = await proc.wait()
        logger.info(f"[pid={proc.pid}] Editor ({mode}) exited: {code}")
