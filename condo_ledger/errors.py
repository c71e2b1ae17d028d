"""Ledger error type and response helpers.

Every failure a caller is expected to handle is a ``LedgerError`` tagged
with an ``ErrorKind``; callers branch on ``error.kind`` instead of catching
one class per condition::

    try:
        result = await allocator.allocate(request)
    except LedgerError as e:
        match e.kind:
            case ErrorKind.NOT_FOUND: ...
            case ErrorKind.VALIDATION: ...
"""

from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    """Category of a ledger failure."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class LedgerError(Exception):
    """Base ledger error."""

    def __init__(self, message: str, kind: ErrorKind):
        """Initialize error."""
        self.message = message
        self.kind = kind
        super().__init__(message)

    def __repr__(self) -> str:
        return f"LedgerError(kind={self.kind.value!r}, message={self.message!r})"


def validation_error(message: str) -> LedgerError:
    """Input rejected before any I/O."""
    return LedgerError(message, ErrorKind.VALIDATION)


def not_found_error(message: str) -> LedgerError:
    """A referenced period or config does not exist."""
    return LedgerError(message, ErrorKind.NOT_FOUND)


def conflict_error(message: str) -> LedgerError:
    """The operation collides with existing state."""
    return LedgerError(message, ErrorKind.CONFLICT)


def error_response(error: LedgerError) -> Dict[str, Any]:
    """Create a standardized error payload for collaborators."""
    return {
        "error": {
            "code": error.kind.value,
            "message": error.message,
        }
    }


__all__ = [
    "ErrorKind",
    "LedgerError",
    "validation_error",
    "not_found_error",
    "conflict_error",
    "error_response",
]
