"""Exception handlers rendering the error envelope."""

from typing import Any, Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vidtube.errors import ApiError
from vidtube.models.response import ErrorResponse

logger = structlog.get_logger(__name__)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[list[Any]] = None,
) -> JSONResponse:
    correlation_id = _correlation_id(request)
    body = ErrorResponse(
        status_code=status_code,
        message=message,
        errors=jsonable_encoder(errors or []),
        correlation_id=correlation_id,
    )
    headers = {"X-Correlation-Id": correlation_id}
    if status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for domain errors, request validation and crashes."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "api_error",
            status_code=exc.status_code,
            error_type=type(exc).__name__,
            message=exc.message,
        )
        return _error_response(request, exc.status_code, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render body/query validation failures as 400 with field details."""
        errors = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", ["unknown"])),
                "message": err.get("msg", "Validation failed"),
            }
            for err in exc.errors()
        ]
        message = errors[0]["message"] if errors else "Request validation failed"

        logger.warning("validation_error", errors=errors)
        return _error_response(request, 400, message, errors)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_exception", error_type=type(exc).__name__)
        return _error_response(request, 500, "An internal error occurred")
