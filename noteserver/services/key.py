"""Key service: derive per-site passphrases from a secret the user types in."""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from noteserver.config import Config
from noteserver.core import keygen
from noteserver.core.clipboard import SystemClipboard
from noteserver.core.prompt import prompt_for_text
from noteserver.core.registry import Method, Plugin
from noteserver.errors import InvalidRequest, NotApplicable, NotFound
from noteserver.models.schemas import (
    KeyGenReply,
    KeyGenRequest,
    KeyPolicy,
    Site,
    SiteRequest,
    TextRequest,
)

logger = logging.getLogger(__name__)


def merge_request(site: Site, req: KeyGenRequest) -> None:
    """Apply the per-request overrides in req to site."""
    if req.format is not None:
        site.format = req.format
    if req.length is not None:
        site.length = req.length
    if req.punct is not None:
        site.punct = req.punct
    if req.salt is not None:
        site.salt = req.salt


class KeyService(Plugin):
    """Active only when a key policy file is configured; update reloads it."""

    def __init__(self, clipboard: Optional[SystemClipboard] = None, prompt=prompt_for_text):
        self._clipboard = clipboard
        self._prompt = prompt
        self._lock = threading.Lock()
        self.policy: Optional[KeyPolicy] = None
        self.path = ""

    def init(self, config: Config) -> None:
        if not config.key.config_file:
            raise NotApplicable("no key configuration file")
        self.path = config.key.config_file
        if self._clipboard is None:
            self._clipboard = SystemClipboard(config.clip.copy_command, config.clip.paste_command)
        self.update()

    def update(self) -> None:
        policy = keygen.load_policy(self.path)
        logger.info(f"Loaded key config from {self.path!r}")
        with self._lock:
            self.policy = policy

    def methods(self) -> Dict[str, Method]:
        return {
            "Generate": Method(self.generate, KeyGenRequest, "Generate the passphrase for a host"),
            "List": Method(self.list, None, "List the hosts with key settings"),
            "Site": Method(self.site, SiteRequest, "Show the key settings for a host"),
        }

    def _site(self, host: str) -> Tuple[Site, bool]:
        with self._lock:
            return keygen.site_for(self.policy, host)

    async def generate(self, req: KeyGenRequest) -> KeyGenReply:
        if not req.host:
            raise InvalidRequest("missing host name")
        site, known = self._site(req.host)
        if not known and req.strict:
            raise InvalidRequest(f"no match for host: {req.host!r}")
        merge_request(site, req)
        if site.length < keygen.MIN_LENGTH:
            raise InvalidRequest(f"invalid key length {site.length} < {keygen.MIN_LENGTH}")
        if site.format and len(site.format) < keygen.MIN_LENGTH:
            raise InvalidRequest(f"invalid format length {len(site.format)} < {keygen.MIN_LENGTH}")

        secret = await self._prompt(TextRequest(prompt=f"Secret key for {site.host!r}", hide=True))
        pw = keygen.derive(site, secret)
        reply = KeyGenReply(key=pw, hash=keygen.check_hash(pw), label=site.host)

        # When copying, keep the passphrase out of the reply.
        if req.copy_key:
            await self._clipboard.set(pw.encode("utf-8"))
            reply.key = ""
        return reply

    async def list(self) -> List[str]:
        with self._lock:
            return sorted(self.policy.sites)

    async def site(self, req: SiteRequest) -> Site:
        if not req.host:
            raise InvalidRequest("missing host name")
        site, known = self._site(req.host)
        if not known and req.strict:
            raise NotFound(f"no config for {req.host!r}")
        if not req.full:
            site.hints = {}
            site.otp = None
        return site
