"""Daemon configuration: pydantic models loaded from YAML and the environment."""

import logging
import os
import sys
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def expand_path(path: str) -> str:
    """Expand $VAR and ~ references in a configured path."""
    return os.path.expanduser(os.path.expandvars(path)) if path else ""


def _default_copy_command() -> List[str]:
    if sys.platform == "darwin":
        return ["pbcopy"]
    return ["xclip", "-selection", "clipboard"]


def _default_paste_command() -> List[str]:
    if sys.platform == "darwin":
        return ["pbpaste"]
    return ["xclip", "-selection", "clipboard", "-o"]


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class NoteCategory(_Section):
    """A named directory of dated note files."""

    name: str
    dir: str
    suffix: str = ".txt"

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value or "/" in value:
            raise ValueError(f"invalid category name {value!r}")
        return value

    @field_validator("suffix")
    @classmethod
    def _check_suffix(cls, value: str) -> str:
        if not value:
            return ".txt"
        return value if value.startswith(".") else "." + value

    def file_path(self, base: str, version: str, ext: str = "") -> str:
        """Path of <base>-<version><ext> inside this category's directory.

        An empty ext selects the category's default suffix.
        """
        name = f"{base}-{version}{ext or self.suffix}"
        return os.path.join(expand_path(self.dir), name)


class ClipConfig(_Section):
    save_file: str = ""
    copy_command: List[str] = Field(default_factory=_default_copy_command)
    paste_command: List[str] = Field(default_factory=_default_paste_command)


class EditConfig(_Section):
    command: str = Field(default_factory=lambda: os.getenv("EDITOR", ""))
    touch_new: bool = False


class NotesConfig(_Section):
    categories: List[NoteCategory] = Field(default_factory=list)

    @field_validator("categories")
    @classmethod
    def _unique_names(cls, value: List[NoteCategory]) -> List[NoteCategory]:
        seen = set()
        for cat in value:
            if cat.name in seen:
                raise ValueError(f"duplicate note category {cat.name!r}")
            seen.add(cat.name)
        return value


class KeyConfig(_Section):
    config_file: str = ""


class NotifyConfig(_Section):
    sound: str = "Glass"
    voice: str = "Moira"


class Config(_Section):
    """Settings for the daemon and every service plugin."""

    address: str = Field(default_factory=lambda: os.getenv("NOTIFIER_ADDR", ""))
    debug_log: bool = False
    token: Optional[str] = None
    acl: List[str] = Field(default_factory=list)

    clip: ClipConfig = Field(default_factory=ClipConfig)
    edit: EditConfig = Field(default_factory=EditConfig)
    notes: NotesConfig = Field(default_factory=NotesConfig)
    key: KeyConfig = Field(default_factory=KeyConfig)
    notify: NotifyConfig = Field(default_factory=NotifyConfig)


class ConfigError(Exception):
    """The configuration file could not be read or is invalid."""


def load_config(path: str = "", **overrides) -> Config:
    """Load the configuration file at path, if any.

    Environment defaults are read after loading a .env file; keyword overrides
    with a value other than None replace top-level fields of the result.
    """
    load_dotenv()

    data: Dict = {}
    if path:
        try:
            with open(expand_path(path), "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"reading config {path!r}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"parsing config {path!r}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config {path!r} must contain a mapping")

    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        cfg = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}") from e

    logger.debug(f"Loaded config from {path or '<defaults>'}")
    return cfg
