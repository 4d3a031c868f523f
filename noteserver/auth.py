"""Access checks applied to each request before it is dispatched."""

import fnmatch
import hmac
from typing import Any, List, Optional

from noteserver.config import Config
from noteserver.errors import Unauthorized


def check_method(rules: List[str], method: str) -> bool:
    """Report whether method is allowed by rules.

    Each rule is a glob; a leading "-" makes it a denial. The first matching
    rule decides. With no rules, every method is allowed.
    """
    for rule in rules:
        pattern = rule[1:] if rule.startswith("-") else rule
        if fnmatch.fnmatchcase(method, pattern):
            return pattern == rule
    return not rules


class Authorizer:
    """Checks the access token and method rules of the configuration."""

    def __init__(self, token: Optional[str] = None, acl: Optional[List[str]] = None):
        self.token = token
        self.acl = list(acl or [])

    @classmethod
    def from_config(cls, config: Config) -> "Authorizer":
        return cls(config.token, config.acl)

    def check(self, method: str, auth: Any = None) -> None:
        """Raise Unauthorized unless the request may call method."""
        if not self.token or method.startswith("rpc."):
            return
        if not isinstance(auth, str) or not auth:
            raise Unauthorized("no authorization token")
        if not hmac.compare_digest(auth.encode("utf-8"), self.token.encode("utf-8")):
            raise Unauthorized("invalid authorization token")
        if not check_method(self.acl, method):
            raise Unauthorized(f"method {method!r} not allowed")
