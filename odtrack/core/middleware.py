"""
Request context middleware — tags every request with a short id for the
logs and echoes it back in X-Request-ID.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from odtrack.core.logging_config import generate_request_id, logger, set_request_id, set_user_id

# Paths not worth a log line
QUIET_PATHS = {"/", "/docs", "/redoc", "/openapi.json", "/api/health"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_user_id("")

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        if request.url.path not in QUIET_PATHS and request.method != "OPTIONS":
            logger.info(
                f"HTTP {request.method} {request.url.path} - {response.status_code} ({duration_ms:.2f}ms)",
                extra={"http_status": response.status_code, "duration_ms": round(duration_ms, 2)},
            )
        return response
