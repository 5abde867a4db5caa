"""Response envelopes shared by every endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Success envelope.

    Attributes:
        status_code: HTTP status of the response
        data: Operation payload
        message: Human-readable outcome
        success: True when status_code is below 400
    """

    status_code: int = Field(ge=100, le=599)
    data: Any = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def of(cls, status_code: int, data: Any, message: str) -> "ApiResponse":
        """Build an envelope, deriving success from the status code."""
        return cls(
            status_code=status_code,
            data=data,
            message=message,
            success=status_code < 400,
        )


class ErrorResponse(BaseModel):
    """Error envelope.

    No stack traces or storage internals are ever included.
    """

    status_code: int
    message: str
    errors: list[Any] = Field(default_factory=list)
    data: None = None
    success: bool = False
    correlation_id: Optional[str] = None
