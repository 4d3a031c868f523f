"""Request and response models for the noteserver services."""

import base64
import binascii
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


def _decode_bytes(value: Any) -> Any:
    # On the wire, byte payloads travel as base64 text.
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 data: {e}") from e
    if value is None:
        return b""
    return value


def encode_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


WireBytes = Annotated[
    bytes,
    BeforeValidator(_decode_bytes),
    PlainSerializer(encode_bytes, return_type=str, when_used="json"),
]


def to_wire(value: Any) -> Any:
    """Convert a handler result into a JSON-compatible value."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (bytes, bytearray)):
        return encode_bytes(bytes(value))
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    return value


# Clip


class ClipSetRequest(BaseModel):
    """Set the live clipboard, optionally storing data and saving the old clip."""

    tag: str = ""
    save: str = ""
    data: WireBytes = b""
    allow_empty: bool = False


class ClipGetRequest(BaseModel):
    tag: str = ""
    save: str = ""
    activate: bool = False


class ClipClearRequest(BaseModel):
    tag: str = ""


# Notes


class Note(BaseModel):
    """A dated note file resolved from a category directory."""

    tag: str
    version: str
    suffix: str = ""
    category: str = ""
    path: str = ""

    def sort_key(self):
        return (self.tag, self.version, self.category)


class NoteWithText(BaseModel):
    note: Note
    text: str


class ListNotesRequest(BaseModel):
    tag: str = ""
    category: str = ""
    version: str = ""


class EditNotesRequest(BaseModel):
    tag: str = ""
    category: str = ""
    version: str = ""
    background: bool = False


class CategoryInfo(BaseModel):
    name: str
    dir: str
    suffix: str = ""


# Notify and User


class PostRequest(BaseModel):
    title: str = ""
    subtitle: str = ""
    body: str = ""
    audible: bool = False
    after: float = Field(default=0, ge=0, description="Delay in seconds")


class SayRequest(BaseModel):
    text: str = ""
    voice: str = ""
    after: float = Field(default=0, ge=0, description="Delay in seconds")


class TextRequest(BaseModel):
    prompt: str = ""
    default: str = ""
    hide: bool = False


class EditRequest(BaseModel):
    name: str = ""
    content: WireBytes = b""


# Key


class Site(BaseModel):
    """Passphrase policy for one host."""

    host: str = ""
    length: int = 0
    format: str = ""
    punct: Optional[bool] = None
    salt: str = ""
    hints: Dict[str, str] = Field(default_factory=dict)
    otp: Optional[str] = None


class KeyPolicy(BaseModel):
    default: Site = Field(default_factory=Site)
    sites: Dict[str, Site] = Field(default_factory=dict)


class KeyGenRequest(BaseModel):
    host: str = ""
    copy_key: bool = Field(default=False, alias="copy")
    strict: bool = False
    format: Optional[str] = None
    length: Optional[int] = None
    punct: Optional[bool] = None
    salt: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class KeyGenReply(BaseModel):
    key: str = ""
    hash: str = ""
    label: str = ""


class SiteRequest(BaseModel):
    host: str = ""
    full: bool = False
    strict: bool = False
