"""Deterministic passphrase derivation and the per-site key policy."""

import hashlib
import hmac
import logging
import string
from typing import Iterator, Tuple

import yaml
from pydantic import ValidationError

from noteserver.config import expand_path
from noteserver.models.schemas import KeyPolicy, Site

logger = logging.getLogger(__name__)

DEFAULT_LENGTH = 16
MIN_LENGTH = 6

PUNCTUATION = "!#$%&*+-=?@^_~"

# Format string characters and the alphabets they draw from. Any other
# character is copied to the output literally.
FORMAT_CLASSES = {
    "A": string.ascii_uppercase,
    "a": string.ascii_lowercase,
    "1": string.digits,
    "*": string.ascii_letters + string.digits,
    "!": PUNCTUATION,
}


def load_policy(path: str) -> KeyPolicy:
    """Load a key policy file. An empty path yields the built-in defaults."""
    if not path:
        return KeyPolicy(default=Site(length=DEFAULT_LENGTH))
    with open(expand_path(path), "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    try:
        policy = KeyPolicy.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"invalid key policy {path!r}: {e}") from e
    if policy.default.length <= 0:
        policy.default.length = DEFAULT_LENGTH
    return policy


def site_for(policy: KeyPolicy, host: str) -> Tuple[Site, bool]:
    """Return the effective site policy for host and whether host was known."""
    known = policy.sites.get(host)
    site = policy.default.model_copy(deep=True)
    site.host = host
    if known is None:
        return site, False
    for field in known.model_fields_set:
        setattr(site, field, getattr(known, field))
    if not site.host:
        site.host = host
    return site, True


def _stream(secret: str, salt: str, host: str) -> Iterator[int]:
    key = (salt + "\x00" + secret).encode("utf-8")
    counter = 0
    while True:
        block = hmac.new(key, f"{host}\x00{counter}".encode("utf-8"), hashlib.sha256).digest()
        yield from block
        counter += 1


def password(site: Site, secret: str) -> str:
    """Derive a passphrase of site.length characters."""
    alphabet = string.ascii_letters + string.digits
    if site.punct:
        alphabet += PUNCTUATION
    stream = _stream(secret, site.salt, site.host)
    return "".join(alphabet[next(stream) % len(alphabet)] for _ in range(site.length))


def formatted(site: Site, secret: str) -> str:
    """Derive a passphrase shaped by site.format."""
    stream = _stream(secret, site.salt, site.host)
    out = []
    for c in site.format:
        alphabet = FORMAT_CLASSES.get(c)
        out.append(alphabet[next(stream) % len(alphabet)] if alphabet else c)
    return "".join(out)


def derive(site: Site, secret: str) -> str:
    if site.format:
        return formatted(site, secret)
    return password(site, secret)


def check_hash(passphrase: str) -> str:
    """A short digest that lets the user verify a passphrase without seeing it."""
    digest = hashlib.sha256(passphrase.encode("utf-8")).hexdigest()
    return "-".join(digest[i:i + 4] for i in range(0, 12, 4))
