"""Request middleware for correlation and access logging."""

import time
import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import get_logger, request_id_ctx

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64
# Probed every few seconds by the container runtime
QUIET_PATHS = frozenset({"/health", "/health/ready"})


def _incoming_request_id(request: Request) -> str:
    """Reuse the caller's request id when it is sane, else mint one."""
    candidate = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if candidate and len(candidate) <= MAX_REQUEST_ID_LENGTH and candidate.isprintable():
        return candidate
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Inject and propagate request ids; log each request with its duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request with correlation ID.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler in chain.

        Returns:
            Response with X-Request-ID header.
        """
        request_id = _incoming_request_id(request)
        token = request_id_ctx.set(request_id)
        path = request.url.path
        log = logger.debug if path in QUIET_PATHS else logger.info
        start_time = time.perf_counter()

        try:
            log(
                "http.request_started",
                method=request.method,
                path=path,
                query=str(request.url.query) if request.url.query else None,
            )

            response = await call_next(request)

            log(
                "http.request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
            )

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_ctx.reset(token)
