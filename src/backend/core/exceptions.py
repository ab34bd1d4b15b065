"""
Domain error taxonomy.

Every check in the debate and survey core fails fast with the most specific
of these. The HTTP layer maps them to status codes in a single exception
handler (see main.py), so none of the core imports FastAPI.
"""

from typing import Any, Optional


class SurbateError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    kind: str = "unexpected"

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "kind": self.kind,
        }
        payload.update({k: v for k, v in self.extra.items() if v is not None})
        return payload


class NotFoundError(SurbateError):
    """Referenced debate, survey or response does not exist (or is deleted)."""

    status_code = 404
    kind = "not_found"


class UnauthorizedError(SurbateError):
    """Missing, invalid or expired admin token, or wrong password."""

    status_code = 401
    kind = "unauthorized"


class ForbiddenError(SurbateError):
    """Authenticated, but the operation is not permitted on this aggregate."""

    status_code = 403
    kind = "forbidden"


class IneligibleError(SurbateError):
    """Voting/responding outside the allowed window, limit reached, or feature disabled."""

    status_code = 400
    kind = "ineligible"


class InvalidInputError(SurbateError):
    """Malformed input: unknown ids, bounds violations, missing required answers."""

    status_code = 400
    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, **extra: Any) -> None:
        super().__init__(message, field=field, **extra)
        self.field = field


class ConflictError(SurbateError):
    """Duplicate response from the same respondent for the same survey."""

    status_code = 409
    kind = "conflict"

    def __init__(self, message: str, response_code: Optional[str] = None, **extra: Any) -> None:
        super().__init__(message, response_code=response_code, **extra)
        self.response_code = response_code


class ConcurrencyConflictError(SurbateError):
    """A stored document changed between load and replace (etag mismatch)."""

    status_code = 409
    kind = "concurrency_conflict"
