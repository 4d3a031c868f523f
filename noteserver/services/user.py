"""User service: prompt the user for text or an edited file."""

import os
import tempfile
from typing import Dict, Optional

from noteserver.config import Config
from noteserver.core.editor import Editor
from noteserver.core.prompt import prompt_for_text
from noteserver.core.registry import Method, Plugin
from noteserver.errors import DelegateError, InvalidRequest
from noteserver.models.schemas import EditRequest, TextRequest


class UserService(Plugin):
    def __init__(self):
        self.editor: Optional[Editor] = None

    def init(self, config: Config) -> None:
        self.editor = Editor(config.edit)

    def methods(self) -> Dict[str, Method]:
        return {
            "Text": Method(self.text, TextRequest, "Prompt the user for a line of text"),
            "Edit": Method(self.edit, EditRequest, "Let the user edit some content in the editor"),
        }

    async def text(self, req: TextRequest) -> str:
        return await prompt_for_text(req)

    async def edit(self, req: EditRequest) -> bytes:
        """Write content to a scratch file named req.name, edit it and return the result."""
        if not self.editor.defined:
            raise DelegateError("no editor is defined")
        if not req.name:
            raise InvalidRequest("missing file name")
        if os.path.basename(req.name) != req.name:
            raise InvalidRequest("file name may not contain a directory")

        # Use the caller's name so the editor shows it, in a private directory
        # so concurrent edits do not collide.
        with tempfile.TemporaryDirectory(prefix="User.Edit.") as tmp:
            path = os.path.join(tmp, req.name)
            try:
                with open(path, "wb") as f:
                    f.write(req.content)
            except OSError as e:
                raise DelegateError(f"writing {path!r}: {e}") from e
            await self.editor.edit(path)
            try:
                with open(path, "rb") as f:
                    return f.read()
            except OSError as e:
                raise DelegateError(f"reading {path!r}: {e}") from e
