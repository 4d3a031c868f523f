"""Tag-addressable clip storage backed by a JSON save file."""

import asyncio
import base64
import binascii
import json
import logging
import os
import tempfile
from typing import Dict, List

from noteserver.core.clipboard import SystemClipboard
from noteserver.errors import DelegateError, InvalidRequest, NotFound

logger = logging.getLogger(__name__)

# SYSTEM_CLIP names the live system clipboard. It appears in listings but is
# never stored in the tag map.
SYSTEM_CLIP = "active"


def _is_live(tag: str) -> bool:
    return tag == "" or tag == SYSTEM_CLIP


class ClipStorage:
    """Named clips plus save/restore of the live clipboard.

    The tag map and the save file are only touched while holding _lock.
    Reading and then writing the live clipboard happens under _live_lock, so
    a value captured for a save tag is always the one being overwritten.
    Where both are needed, _live_lock is taken first.
    """

    def __init__(self, clipboard: SystemClipboard, store_path: str = ""):
        self.clipboard = clipboard
        self.store_path = store_path
        self.saved: Dict[str, bytes] = {}
        self._lock = asyncio.Lock()
        self._live_lock = asyncio.Lock()

    def load(self) -> None:
        """Merge the contents of the save file into the tag map."""
        if not self.store_path:
            return
        try:
            with open(self.store_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as e:
            raise DelegateError(f"loading clips from {self.store_path!r}: {e}") from e

        if not isinstance(raw, dict):
            raise DelegateError(f"clip file {self.store_path!r} is not an object")
        for tag, value in raw.items():
            if _is_live(tag):
                logger.warning(f"Ignoring reserved tag {tag!r} in {self.store_path}")
                continue
            try:
                self.saved[tag] = base64.b64decode(value or "", validate=True)
            except (binascii.Error, TypeError) as e:
                raise DelegateError(f"clip {tag!r} in {self.store_path!r}: {e}") from e
        logger.info(f"Loaded {len(self.saved)} clips from {self.store_path}")

    def _save(self, saved: Dict[str, bytes]) -> None:
        """Write saved to the save file. Caller holds _lock."""
        if not self.store_path:
            return
        payload = {tag: base64.b64encode(data).decode("ascii") for tag, data in saved.items()}
        dirname = os.path.dirname(os.path.abspath(self.store_path))
        try:
            fd, tmp = tempfile.mkstemp(prefix=".clips-", dir=dirname)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f)
                os.chmod(tmp, 0o600)
                os.replace(tmp, self.store_path)
            except BaseException:
                os.unlink(tmp)
                raise
        except OSError as e:
            raise DelegateError(f"saving clips to {self.store_path!r}: {e}") from e

    def _commit(self, saved: Dict[str, bytes]) -> None:
        """Persist saved, then make it the tag map. Caller holds _lock."""
        self._save(saved)
        self.saved = saved

    async def set(self, tag: str, save: str, data: bytes, allow_empty: bool = False) -> bool:
        """Put data on the live clipboard, optionally storing it under tag.

        If save is given, the previous clipboard contents are captured first and
        stored under save. Setting a tag to empty data removes the tag.
        """
        if not data and not allow_empty:
            raise InvalidRequest("empty clip data")
        if tag and save == tag:
            raise InvalidRequest("tag and save are equal")
        if save == SYSTEM_CLIP:
            raise InvalidRequest(f"cannot save to reserved tag {SYSTEM_CLIP!r}")

        async with self._live_lock:
            previous = b""
            if save:
                previous = await self.clipboard.get()
            await self.clipboard.set(data)

            async with self._lock:
                saved = dict(self.saved)
                if not _is_live(tag):
                    if data:
                        saved[tag] = data
                    else:
                        saved.pop(tag, None)
                if save:
                    saved[save] = previous
                self._commit(saved)
        return True

    async def get(self, tag: str, save: str = "", activate: bool = False) -> bytes:
        """Return the clip stored under tag, or the live clipboard.

        With activate, the stored clip also replaces the live clipboard, after
        the old contents are saved under save if that is set.
        """
        if tag and save == tag:
            raise InvalidRequest("tag and save are equal")
        if _is_live(tag):
            return await self.clipboard.get()
        if not activate:
            async with self._lock:
                return self._lookup(tag)
        if save == SYSTEM_CLIP:
            raise InvalidRequest(f"cannot save to reserved tag {SYSTEM_CLIP!r}")

        async with self._live_lock:
            async with self._lock:
                data = self._lookup(tag)
                if save:
                    saved = dict(self.saved)
                    saved[save] = await self.clipboard.get()
                    self._commit(saved)
                await self.clipboard.set(data)
            return data

    def _lookup(self, tag: str) -> bytes:
        data = self.saved.get(tag)
        if data is None:
            raise NotFound(f"tag {tag!r} not found")
        return data

    async def list(self) -> List[str]:
        """Return the stored tags and the live clipboard tag, sorted."""
        async with self._lock:
            tags = set(self.saved)
        tags.add(SYSTEM_CLIP)
        return sorted(tags)

    async def clear(self, tag: str = "") -> bool:
        """Clear the live clipboard, or remove a stored tag.

        Reports whether a stored tag existed.
        """
        if _is_live(tag):
            async with self._live_lock:
                await self.clipboard.set(b"")
            return True
        async with self._lock:
            saved = dict(self.saved)
            existed = saved.pop(tag, None) is not None
            self._commit(saved)
        return existed
