"""Shared fixtures for noteserver tests."""

import datetime

import pytest

from noteserver.config import Config, NoteCategory


class FakeClipboard:
    """In-memory stand-in for the system clipboard."""

    def __init__(self, data: bytes = b""):
        self.data = data
        self.writes = []

    async def get(self) -> bytes:
        return self.data

    async def set(self, data: bytes) -> None:
        self.writes.append(data)
        self.data = data


@pytest.fixture
def clipboard():
    return FakeClipboard(b"initial")


@pytest.fixture
def clip_file(tmp_path):
    return str(tmp_path / "clips.json")


@pytest.fixture
def notes_root(tmp_path):
    """Two category directories with a handful of dated notes."""
    work = tmp_path / "work"
    home = tmp_path / "home"
    work.mkdir()
    home.mkdir()
    for name in [
        "log-20240101.txt",
        "log-20240215.txt",
        "meeting-20240110.txt",
        "meeting-20240110.md",
        "README.txt",
    ]:
        (work / name).write_text(f"work {name}\n")
    for name in ["log-20240215.txt", "todo-20231231.txt"]:
        (home / name).write_text(f"home {name}\n")
    return tmp_path


@pytest.fixture
def categories(notes_root):
    return [
        NoteCategory(name="work", dir=str(notes_root / "work")),
        NoteCategory(name="home", dir=str(notes_root / "home"), suffix=".txt"),
    ]


@pytest.fixture
def fixed_today():
    return lambda: datetime.date(2024, 3, 1)


@pytest.fixture
def config(clip_file, categories, monkeypatch):
    monkeypatch.setenv("EDITOR", "")
    return Config(
        address="127.0.0.1:0",
        clip={"save_file": clip_file},
        notes={"categories": [c.model_dump() for c in categories]},
    )


@pytest.fixture(autouse=True)
def _no_user_env(monkeypatch):
    monkeypatch.delenv("NOTIFIER_ADDR", raising=False)
