"""Request middleware for tracing and logging."""

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from alloctrack.logging import bind_context, clear_context, get_logger
from alloctrack.metrics import record_request

logger = get_logger(__name__)


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Adds request tracing and structured logging.

    - Generates a short request_id for each request
    - Propagates X-Correlation-ID, generating one if absent
    - Binds request_id, correlation_id and the caller's user id to every
      log line emitted while the request is handled
    - Logs completion with timing and records request metrics
    """

    def __init__(self, app: ASGIApp, user_header: str = "X-User-ID"):
        super().__init__(app)
        self.user_header = user_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())[:8]

        clear_context()
        bind_context(
            request_id=request_id,
            correlation_id=correlation_id,
            user_id=request.headers.get(self.user_header),
            method=request.method,
            path=request.url.path,
        )
        request.state.request_id = request_id
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            if not request.url.path.startswith("/metrics"):
                # Route template keeps resource ids out of the labels
                route = request.scope.get("route")
                record_request(
                    method=request.method,
                    path=getattr(route, "path", request.url.path),
                    status_code=response.status_code,
                    duration=duration_ms / 1000,
                )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
            )
            raise

        finally:
            clear_context()
