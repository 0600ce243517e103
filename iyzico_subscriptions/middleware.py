"""Request logging middleware.

Binds a request id to the log context for the whole request, echoes it in
the ``X-Request-ID`` response header and logs one line per request with
status and duration. Health probes are logged at debug level so they do not
drown out webhook traffic.
"""

import time
import uuid
from typing import Callable, Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from iyzico_subscriptions.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlates every log line of a request through a request id.

    Args:
        app: ASGI application
        include_request_details: Log client address and user agent on arrival
        quiet_paths: Paths logged at debug level (health probes)
    """

    def __init__(
        self,
        app: ASGIApp,
        include_request_details: bool = True,
        quiet_paths: Iterable[str] = ("/api/health",),
    ):
        super().__init__(app)
        self.include_request_details = include_request_details
        self.quiet_paths = frozenset(quiet_paths)

    def _request_id(self, request: Request) -> str:
        incoming = request.headers.get(REQUEST_ID_HEADER)
        if incoming and len(incoming) <= 128:
            return incoming
        return uuid.uuid4().hex

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = self._request_id(request)
        path = request.url.path
        bind_context(request_id=request_id, method=request.method, path=path)

        log = logger.debug if path in self.quiet_paths else logger.info
        if self.include_request_details:
            log(
                "request_received",
                client_host=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
                content_length=request.headers.get("content-length"),
            )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise
        else:
            log(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()
