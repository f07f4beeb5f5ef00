"""Errors raised by the listing lifecycle."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Categories of rejected lifecycle operations."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    INVALID_ROLE = "INVALID_ROLE"
    STATE_CONFLICT = "STATE_CONFLICT"
    NOT_OWNER = "NOT_OWNER"
    PREVIOUSLY_EXPIRED = "PREVIOUSLY_EXPIRED"
    RESERVATION_EXPIRED = "RESERVATION_EXPIRED"


HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_ROLE: 403,
    ErrorKind.NOT_OWNER: 403,
    ErrorKind.PREVIOUSLY_EXPIRED: 403,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.RESERVATION_EXPIRED: 409,
}


class LifecycleError(Exception):
    """A lifecycle operation was rejected.

    ``kind`` is the error category and ``code`` the operation-level reason,
    e.g. ``ErrorKind.STATE_CONFLICT`` with code ``"NOT_AVAILABLE"``.
    """

    def __init__(self, kind: ErrorKind, message: str, code: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.code = code or kind.value
        self.message = message

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 400)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<LifecycleError {self.kind.value}/{self.code}: {self.message}>"
