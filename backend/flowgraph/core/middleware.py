"""
Custom middleware for the FastAPI application.
"""

import time
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from flowgraph.core.logging import set_correlation_id


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging with correlation IDs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = set_correlation_id(request.headers.get("X-Correlation-ID"))
        bound = logger.bind(correlation_id=correlation_id)
        bound.debug(f"{request.method} {request.url.path}")

        start_time = time.time()
        status_code = 500
        response = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            response_time_ms = (time.time() - start_time) * 1000
            bound.info(f"{request.method} {request.url.path} -> {status_code} ({response_time_ms:.1f}ms)")
            if response is not None:
                response.headers["X-Correlation-ID"] = correlation_id

        return response
