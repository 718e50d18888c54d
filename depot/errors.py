"""Depot error types.

Every error raised by the core carries a machine-readable ``code`` and the
HTTP status the API layer maps it to. The API layer is the only place that
turns these into responses.
"""

from __future__ import annotations

from typing import Any


class DepotError(Exception):
    """Base class for all Depot errors."""

    code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str = "Internal server error",
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(DepotError):
    """Malformed path, blank required name or invalid discriminator."""

    code = "validation_error"
    status_code = 400


class PathEscapeError(ValidationError):
    """Path resolves outside the sandbox root."""

    code = "path_escape"


class NotFoundError(DepotError):
    code = "not_found"
    status_code = 404


class ConflictError(DepotError):
    """Target already exists where exclusivity is required."""

    code = "conflict"
    status_code = 409


class PayloadTooLargeError(DepotError):
    code = "payload_too_large"
    status_code = 413


class RangeNotSatisfiableError(DepotError):
    """Requested byte range lies outside the file."""

    code = "range_not_satisfiable"
    status_code = 416

    def __init__(self, size: int) -> None:
        super().__init__("Requested range not satisfiable", details={"size": size})
        self.size = size


class InternalError(DepotError):
    """Unexpected I/O failure.

    The message is fixed so filesystem internals never reach the client; the
    original exception is chained and logged server-side.
    """

    def __init__(self, operation: str) -> None:
        super().__init__("Internal server error", details={"operation": operation})
        self.operation = operation
