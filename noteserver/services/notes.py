"""Notes service: list, read and edit dated notes files."""

import asyncio
import logging
from typing import Dict, List, Optional

from noteserver.config import Config
from noteserver.core.editor import Editor
from noteserver.core.notes import NoteResolver
from noteserver.core.registry import Method, Plugin
from noteserver.errors import DelegateError, NotApplicable
from noteserver.models.schemas import (
    CategoryInfo,
    EditNotesRequest,
    ListNotesRequest,
    Note,
    NoteWithText,
)

logger = logging.getLogger(__name__)


class NotesService(Plugin):
    """Active only when at least one note category is configured."""

    def __init__(self, resolver_factory=NoteResolver):
        self._resolver_factory = resolver_factory
        self.resolver: Optional[NoteResolver] = None
        self.editor: Optional[Editor] = None

    def init(self, config: Config) -> None:
        if not config.notes.categories:
            raise NotApplicable("no note categories are configured")
        self.resolver = self._resolver_factory(config.notes.categories)
        self.editor = Editor(config.edit)

    def methods(self) -> Dict[str, Method]:
        return {
            "List": Method(self.list, ListNotesRequest, "List notes matching a tag, category and version glob"),
            "Read": Method(self.read, EditNotesRequest, "Read the text of a single note"),
            "Edit": Method(self.edit, EditNotesRequest, "Open a note in the configured editor"),
            "Categories": Method(self.categories, None, "List the configured note categories"),
        }

    # Directory listings and file reads run in worker threads.

    async def list(self, req: ListNotesRequest) -> List[Note]:
        return await asyncio.to_thread(self.resolver.list, req.tag, req.category, req.version)

    async def read(self, req: EditNotesRequest) -> NoteWithText:
        return await asyncio.to_thread(self._read, req)

    def _read(self, req: EditNotesRequest) -> NoteWithText:
        note = self.resolver.resolve(req.tag, req.category, req.version)
        try:
            with open(note.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise DelegateError(f"reading note {note.path!r}: {e}") from e
        return NoteWithText(note=note, text=data.decode("utf-8", "replace"))

    async def edit(self, req: EditNotesRequest) -> None:
        if not self.editor.defined:
            raise DelegateError("no editor is defined")
        note = await asyncio.to_thread(self.resolver.resolve, req.tag, req.category, req.version)
        await self.editor.edit(note.path, background=req.background)

    async def categories(self) -> List[CategoryInfo]:
        return [
            CategoryInfo(name=cat.name, dir=cat.dir, suffix=cat.suffix)
            for cat in self.resolver.categories
        ]
