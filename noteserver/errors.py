"""Typed errors shared by the plugins and the transports."""

from typing import Any, Optional

# JSON-RPC 2.0 reserved codes.
PARSE_ERROR = -32700
INVALID_ENVELOPE = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Application codes.
UNAUTHORIZED = -32002
USER_CANCELLED = -29999
RESOURCE_NOT_FOUND = -29998
AMBIGUOUS_RESULT = -29997


class ServiceError(Exception):
    """An error reported to the caller of a service method."""

    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        err = {"code": self.code, "message": self.message}
        if self.data is not None:
            err["data"] = self.data
        return err


class InvalidRequest(ServiceError):
    """The caller sent malformed or contradictory parameters."""

    code = INVALID_PARAMS


class NotFound(ServiceError):
    """A referenced clip tag or note does not exist."""

    code = RESOURCE_NOT_FOUND


class AmbiguousResult(ServiceError):
    """More than one note matched a query that must be unique."""

    code = AMBIGUOUS_RESULT


class DelegateError(ServiceError):
    """An OS program, file or other delegate failed."""

    code = INTERNAL_ERROR


class UserCancelled(ServiceError):
    """The user dismissed an interactive prompt."""

    code = USER_CANCELLED


class MethodNotFound(ServiceError):
    code = METHOD_NOT_FOUND


class Unauthorized(ServiceError):
    code = UNAUTHORIZED


class NotApplicable(Exception):
    """Raised by Plugin.init when the configuration does not enable the plugin."""


class PluginRegistrationError(Exception):
    """A plugin was registered twice, or registered as None."""


class PluginInitError(Exception):
    """A plugin failed to initialize; the process cannot continue."""
