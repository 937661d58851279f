"""
HTTP request logging middleware.

Logs every API call with its duration and status, and stamps each request
with a request id and a correlation id (taken from ``X-Correlation-ID`` when
the caller sends one). Both ids are echoed as response headers.
"""

import time
import uuid
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ...utils.logging import get_order_logger

logger = get_order_logger("order_management.requests")

SLOW_REQUEST_MS = 1000


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = str(uuid.uuid4())
        correlation_id = request.headers.get("X-Correlation-ID") or request_id

        request.state.request_id = request_id
        request.state.correlation_id = correlation_id
        start_time = time.perf_counter()

        logger.info(
            f"[API CALL] {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "client_ip": self._get_client_ip(request),
                "event_type": "http_request_start",
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"[API ERROR] {request.method} {request.url.path}: {str(e)}",
                extra={
                    "request_id": request_id,
                    "correlation_id": correlation_id,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                    "error_type": type(e).__name__,
                    "event_type": "http_request_error",
                },
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400 or duration_ms > SLOW_REQUEST_MS:
            log = logger.warning
        else:
            log = logger.info

        log(
            f"[API RESPONSE] {request.method} {request.url.path} ({duration_ms}ms)",
            extra={
                "request_id": request_id,
                "correlation_id": correlation_id,
                "user_id": getattr(request.state, "user_id", "anonymous"),
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "event_type": "http_request_complete",
            },
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"


def setup_request_logging(app: FastAPI) -> None:
    app.add_middleware(RequestLoggingMiddleware)
