"""
Error taxonomy for the volume plugin.

Every failure that crosses a service boundary is a PluginError carrying an
ErrorKind. Routers turn them into HTTP responses, PluginClient turns those
responses back into the same classes.
"""

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Protocol error codes"""
    INVALID_ARGUMENT = "InvalidArgument"
    ALREADY_EXISTS = "AlreadyExists"
    FAILED_PRECONDITION = "FailedPrecondition"
    INTERNAL = "Internal"


HTTP_STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.FAILED_PRECONDITION: 412,
    ErrorKind.INTERNAL: 500,
}


class PluginError(Exception):
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_detail(self) -> dict:
        return {"code": self.kind.value, "message": self.message}


class InvalidArgument(PluginError):
    kind = ErrorKind.INVALID_ARGUMENT


class AlreadyExists(PluginError):
    kind = ErrorKind.ALREADY_EXISTS


class FailedPrecondition(PluginError):
    kind = ErrorKind.FAILED_PRECONDITION


class Internal(PluginError):
    kind = ErrorKind.INTERNAL


_ERROR_CLASSES = {cls.kind: cls for cls in (InvalidArgument, AlreadyExists, FailedPrecondition, Internal)}


def error_from_kind(kind: str, message: str) -> PluginError:
    """Rebuild a PluginError from its wire code (unknown codes become Internal)."""
    try:
        error_kind = ErrorKind(kind)
    except ValueError:
        return Internal(message)
    return _ERROR_CLASSES[error_kind](message)


def error_from_status(status_code: int, message: str, kind: Optional[str] = None) -> PluginError:
    if kind:
        return error_from_kind(kind, message)
    for error_kind, status in HTTP_STATUS_BY_KIND.items():
        if status == status_code:
            return _ERROR_CLASSES[error_kind](message)
    return Internal(message)


class BackendError(Exception):
    """Raised by Backend implementations when a storage command fails."""


class MountError(Exception):
    """Raised by Mounter implementations when a mount operation fails."""
