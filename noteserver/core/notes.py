"""Resolve logical note names to dated files in category directories.

A note file is named <tag>-<YYYYMMDD><suffix> and lives in the directory of
one configured category. A note is addressed by its tag, an optional category
and a version, which is one of:

- "new": today's date, in a uniquely specified category;
- "" or "latest": the newest existing version;
- "YYYY-MM-DD": exactly that version, which must be unique.

Nothing is cached; every call reads the directories afresh.
"""

import datetime
import fnmatch
import glob
import logging
import os
import re
from typing import Callable, List, Optional, Sequence, Tuple

from noteserver.config import NoteCategory, expand_path
from noteserver.errors import AmbiguousResult, DelegateError, InvalidRequest, NotFound
from noteserver.models.schemas import Note

logger = logging.getLogger(__name__)

VERSION_NEW = "new"
VERSION_LATEST = "latest"

_note_name = re.compile(r"(.*)-([0-9]{4})([0-9]{2})([0-9]{2})(\.\w+)$")


def split_ext(name: str) -> Tuple[str, str]:
    """Split a tag into its base name and file suffix, if it has one."""
    base, ext = os.path.splitext(name)
    return base, ext


def parse_version(version: str) -> datetime.date:
    """Parse a YYYY-MM-DD version string, strictly."""
    try:
        day = datetime.datetime.strptime(version, "%Y-%m-%d").date()
    except ValueError as e:
        raise InvalidRequest(f"invalid version: {e}") from e
    if day.strftime("%Y-%m-%d") != version:
        raise InvalidRequest(f"invalid version: {version!r} is not YYYY-MM-DD")
    return day


class NoteResolver:
    """Finds note files across the configured categories."""

    def __init__(
        self,
        categories: Sequence[NoteCategory],
        today: Callable[[], datetime.date] = datetime.date.today,
    ):
        self.categories = list(categories)
        self.today = today

    def find_categories(self, name: str) -> Optional[List[NoteCategory]]:
        """All categories if name is empty, the named one, or None."""
        if not name:
            return list(self.categories)
        for cat in self.categories:
            if cat.name == name:
                return [cat]
        return None

    def _categories(self, name: str) -> List[NoteCategory]:
        cats = self.find_categories(name)
        if cats is None:
            raise InvalidRequest(f"invalid category: {name!r}")
        return cats

    def list(self, tag: str = "", category: str = "", version: str = "") -> List[Note]:
        """Notes matching tag and category whose version matches the glob version."""
        cats = self._categories(category)
        base, ext = split_ext(tag)
        return self._filter_and_sort(base, version, ext, cats)

    def resolve(self, tag: str, category: str = "", version: str = "") -> Note:
        """Map a (tag, category, version) triple onto a single note."""
        cats = self._categories(category)
        if not tag:
            raise InvalidRequest("missing base note name")
        if "/" in tag or os.sep in tag:
            raise InvalidRequest("tag may not contain '/'")
        base, ext = split_ext(tag)

        if version == VERSION_NEW:
            if len(cats) != 1:
                raise InvalidRequest("no category specified for new note")
            cat = cats[0]
            day = self.today()
            path = cat.file_path(base, day.strftime("%Y%m%d"), ext)
            return Note(
                tag=base,
                version=day.strftime("%Y-%m-%d"),
                suffix=os.path.splitext(path)[1],
                category=cat.name,
                path=path,
            )

        if version in ("", VERSION_LATEST):
            notes = self._filter_and_sort(base, "", ext, cats)
            if not notes:
                raise NotFound(f"no notes matching {tag!r}")
            return notes[-1]

        parse_version(version)
        notes = self._filter_and_sort(base, version, ext, cats)
        if not notes:
            raise NotFound(f"no notes matching version {version} of {tag!r}")
        if len(notes) > 1:
            raise AmbiguousResult(
                f"multiple notes ({len(notes)}) matching version {version} of {tag!r}",
                data=[n.path for n in notes],
            )
        return notes[0]

    def _filter_and_sort(
        self, base: str, version: str, suffix: str, cats: Sequence[NoteCategory]
    ) -> List[Note]:
        match = []
        for cat in cats:
            for note in self._list_dir(base, suffix, cat):
                if version and not fnmatch.fnmatchcase(note.version, version):
                    continue
                if suffix and note.suffix != suffix:
                    continue
                match.append(note)
        match.sort(key=Note.sort_key)
        return match

    def _list_dir(self, base: str, ext: str, cat: NoteCategory) -> List[Note]:
        pattern = (base or "*") + "-????????" + (ext or ".*")
        dirname = expand_path(cat.dir)
        try:
            names = glob.glob(os.path.join(glob.escape(dirname), pattern))
        except OSError as e:
            raise DelegateError(f"listing notes in {dirname!r}: {e}") from e

        notes = []
        for name in names:
            m = _note_name.match(os.path.basename(name))
            if m is None:
                continue
            notes.append(
                Note(
                    tag=m.group(1),
                    version=f"{m.group(2)}-{m.group(3)}-{m.group(4)}",
                    suffix=m.group(5),
                    category=cat.name,
                    path=name,
                )
            )
        return notes
