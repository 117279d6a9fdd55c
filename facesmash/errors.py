"""
errors.py — Error taxonomy for the Facesmash API
================================================
Every failure the service can report is a ``FacesmashError`` subclass.
Each one knows its HTTP status and renders the shared error body::

    {"error": <short title>, "message": <human-readable>, "details": [...]}

``details`` is only present for multi-error validation failures and
``retryAfter`` only for rate-limited responses. main.py installs the
exception handlers that turn these into JSON responses.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class FacesmashError(Exception):
    """Base class: a failure that maps onto one HTTP error response."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(
        self,
        message: str,
        *,
        error: Optional[str] = None,
        details: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        self.details = details

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = list(self.details)
        return body


# ---------------------------------------------------------------------------
# Request validation (400)
# ---------------------------------------------------------------------------

class InvalidIdentifier(FacesmashError):
    status_code = 400
    error = "Invalid ID format"

    def __init__(self, message: str = "The provided ID is not a valid student identifier", **kw: Any) -> None:
        super().__init__(message, **kw)


class ValidationFailed(FacesmashError):
    """Carries every violation found, not just the first."""

    status_code = 400
    error = "Validation failed"

    def __init__(
        self,
        details: List[str],
        message: str = "Please check the following errors:",
        **kw: Any,
    ) -> None:
        super().__init__(message, details=details, **kw)


class MissingField(FacesmashError):
    status_code = 400

    def __init__(self, field: str, message: Optional[str] = None, **kw: Any) -> None:
        self.field = field
        kw.setdefault("error", f"Missing {field}")
        super().__init__(message or f"{field} is required", **kw)


# ---------------------------------------------------------------------------
# Rate limiting (429)
# ---------------------------------------------------------------------------

class RateLimited(FacesmashError):
    status_code = 429
    error = "Too many requests"

    def __init__(self, retry_after: int, max_requests: int, window_ms: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            f"Maximum {max_requests} requests per {window_ms / 1000:g} seconds exceeded"
        )

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["retryAfter"] = self.retry_after
        return body


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------

class NotFound(FacesmashError):
    status_code = 404
    error = "Student not found"

    def __init__(self, message: str = "The specified student does not exist", **kw: Any) -> None:
        super().__init__(message, **kw)


class InactiveTarget(FacesmashError):
    status_code = 400
    error = "Student is inactive"

    def __init__(self, message: str = "Cannot vote for inactive students", **kw: Any) -> None:
        super().__init__(message, **kw)


class DuplicateRollNumber(FacesmashError):
    status_code = 409
    error = "Student already exists"

    def __init__(self, roll_number: Optional[str] = None, **kw: Any) -> None:
        self.roll_number = roll_number
        if roll_number:
            message = f"Student with roll number {roll_number} already exists"
        else:
            message = "Student with this roll number already exists"
        super().__init__(message, **kw)


class InsufficientCandidates(FacesmashError):
    status_code = 404
    error = "Not enough students found"

    def __init__(self, found: int, gender: Optional[str] = None) -> None:
        self.found = found
        suffix = f" for gender: {gender}" if gender else ""
        super().__init__(f"Only {found} student(s) available{suffix}")


class StoreFailure(FacesmashError):
    """Catch-all for persistence errors; carries the store's own message."""

    status_code = 500

    def __init__(self, error: str, message: str) -> None:
        super().__init__(message, error=error)
