"""Request timing middleware."""

import os
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.logger import get_logger

logger = get_logger("http")


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Time every request, tag it with a request id and flag slow ones.

    Adds ``X-Process-Time`` and ``X-Request-ID`` headers. Requests slower than
    ``SLOW_REQUEST_MS`` (default 500) are logged as warnings.
    """

    EXCLUDED_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json"}

    def __init__(self, app, slow_threshold_ms: int | None = None):
        super().__init__(app)
        if slow_threshold_ms is None:
            slow_threshold_ms = int(os.getenv("SLOW_REQUEST_MS", "500"))
        self.slow_threshold = slow_threshold_ms / 1000

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        start_time = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        response.headers["X-Request-ID"] = request_id

        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return response

        line = f"[{request_id}] {request.method} {path} -> {response.status_code} in {elapsed:.3f}s"
        if elapsed >= self.slow_threshold:
            logger.warning(f"[SLOW REQUEST] {line}")
        else:
            logger.debug(line)

        return response
