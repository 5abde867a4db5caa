"""Error taxonomy for the account service.

Every failure an operation can report to a caller is one of these types.
Each carries an HTTP status code, a caller-safe message and an optional
list of structured details; the API layer renders them verbatim.
"""

from typing import Any, Optional


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        errors: Optional[list[Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []


class ValidationError(ApiError):
    """Missing or blank required input (400)."""

    status_code = 400


class UnauthorizedError(ApiError):
    """Bad credentials or an invalid, expired or replayed token (401)."""

    status_code = 401


class AuthenticationFailed(UnauthorizedError):
    """A token failed verification.

    Raised by the token issuer for every verification failure so callers
    cannot tell a bad signature from an expired or malformed token.
    """


class NotFoundError(ApiError):
    """No matching record (404)."""

    status_code = 404


class ConflictError(ApiError):
    """Uniqueness violation (409)."""

    status_code = 409


class InternalError(ApiError):
    """Unexpected persistence failure (500)."""

    status_code = 500
