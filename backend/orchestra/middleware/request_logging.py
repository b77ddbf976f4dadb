"""Request logging middleware."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from orchestra.core.logging_config import get_logger, log_request
from orchestra.utils.logging_utils import redact_ip

logger = get_logger(__name__)

# Slow request threshold
SLOW_REQUEST_MS = 1000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every API request with method, path, status and duration.

    A request id is bound to the structlog context for the duration of the
    request and echoed in the ``X-Request-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        client_ip = redact_ip(request.client.host if request.client else None)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            logger.exception(
                "http_request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=duration_ms,
                client_ip=client_ip,
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = round((time.time() - start_time) * 1000, 2)
        log_request(
            logger,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            client_ip=client_ip,
            request_id=request_id,
            slow=duration_ms > SLOW_REQUEST_MS,
        )
        response.headers["X-Request-ID"] = request_id
        return response
