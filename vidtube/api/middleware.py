"""Request correlation and access logging."""

import re
import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-Id"

# Client-supplied ids end up in logs and response headers
_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

logger = structlog.get_logger(__name__)


def _correlation_id_from(request: Request) -> str:
    supplied = request.headers.get(CORRELATION_HEADER)
    if supplied and _CORRELATION_ID_RE.match(supplied):
        return supplied
    return str(uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id.

    Reuses a well-formed X-Correlation-Id from the client, otherwise mints
    one. The id is stored on request.state, bound into the structlog
    context along with path and method, echoed in the response header, and
    a request_completed event records status and latency.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = _correlation_id_from(request)
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            path=request.url.path,
            method=request.method,
        )

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
