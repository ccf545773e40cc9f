"""Request-logging middleware for FastAPI."""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("schoolmate.api")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Attach a request ID and log method/path/status/duration/tenant.

    Runs outside tenant resolution, so the tenant is read back from
    ``request.state`` after the inner app has finished.
    """

    async def dispatch(self, request: Request, call_next):  # noqa: ANN001
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        tenant = getattr(request.state, "tenant", None)
        logger.info(
            "method=%s path=%s status_code=%s duration_ms=%.1f request_id=%s tenant=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
            tenant.schema_name if tenant is not None else "-",
        )

        response.headers["X-Request-ID"] = request_id
        return response
