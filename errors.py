"""
Domain error taxonomy

Every error raised by the store layer derives from StoreDomainError and knows
the HTTP status it maps to. The HTTP transport turns any of them into a
{"status", "message"} body without inspecting driver exceptions.
"""

from typing import Any, Optional


class StoreDomainError(Exception):
    """Base class for all errors the store layer raises on purpose."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status_code, "message": self.message}


class InvalidFilterError(StoreDomainError):
    """
    A FilterSpec failed its own checks. Always raised before any query runs.

    `errors` holds one structured entry per offending field:
    {"code": ..., "path": ..., "message": ...}
    """

    status_code = 400
    default_message = "Invalid filter"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[dict]] = None):
        self.errors = list(errors or [])
        if message is None and self.errors:
            message = "; ".join(e["message"] for e in self.errors)
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class InvalidDataError(StoreDomainError):
    """Domain validation failure on a write payload."""

    status_code = 400
    default_message = "Invalid data"


class InvalidForeignKeyError(InvalidDataError):
    """A write referenced a row that does not exist."""

    default_message = "Referenced record does not exist"


class NotFoundError(StoreDomainError):
    status_code = 404
    default_message = "Record not found"


class VersionConflictError(StoreDomainError):
    """The caller's version no longer matches the stored one. Re-fetch and retry."""

    status_code = 409
    default_message = "Version conflict: the record was modified by another request"


class DuplicateError(StoreDomainError):
    status_code = 409
    default_message = "A record with this value already exists"


class StoreError(StoreDomainError):
    """
    Catch-all for underlying store failures (connectivity, syntax, timeout).

    `operation` names what was being attempted (get, create, update, delete,
    filter) so callers can tell failures apart without seeing driver text.
    """

    status_code = 500
    default_message = "Database operation failed"

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message or f"Failed to {operation} record")


class QueryError(StoreError):
    """The statement could not be executed."""


class ScanError(StoreError):
    """A returned row could not be decoded into a domain entity."""


class IterationError(StoreError):
    """Fetching further rows from an open result failed."""
