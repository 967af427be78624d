"""
Academia Records - HTTP Middleware
Request correlation, access logging, response hardening and body size limits
"""

import time
from typing import Callable, Tuple
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from starlette.types import ASGIApp

from academia.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    generate_request_id,
)


# Probes and docs are polled constantly and carry no record data
QUIET_PATHS: Tuple[str, ...] = ("/", "/health", "/favicon.ico", "/docs", "/redoc", "/openapi.json")
QUIET_PREFIXES: Tuple[str, ...] = ("/api/v1/health/",)

SLOW_REQUEST_MS = 1000


def is_quiet(path: str) -> bool:
    return path in QUIET_PATHS or path.startswith(QUIET_PREFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log for every API call.

    The request id is taken from X-Request-ID when the caller sends one and
    is echoed back with X-Response-Time. The authenticated user id, set on
    request.state by the auth dependency, is attached to the log line.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        method, path = request.method, request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
            elapsed = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed:.2f}ms"

            if not is_quiet(path):
                # Context vars set inside the endpoint do not flow back here
                user_id = getattr(request.state, "user_id", None)
                if user_id:
                    set_user_id(user_id)
                logger.log_request(
                    method,
                    path,
                    response.status_code,
                    elapsed,
                    client_ip=request.client.host if request.client else "unknown",
                )
                if elapsed > SLOW_REQUEST_MS:
                    logger.warning(
                        f"Slow request: {method} {path} took {elapsed:.2f}ms",
                        extra={"event_type": "slow_request", "http_path": path, "duration_ms": elapsed}
                    )

            return response

        except Exception as exc:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(
                f"{method} {path} raised {type(exc).__name__} after {elapsed:.2f}ms",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": method,
                    "http_path": path,
                    "duration_ms": elapsed,
                    "error_type": type(exc).__name__,
                }
            )
            raise

        finally:
            set_request_id("")
            set_user_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers; API responses carry student records and are never cached"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"

        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects oversized bodies by Content-Length before they are parsed.
    Bulk imports are JSON arrays, so the default leaves room for a few
    thousand rows; the row cap itself is BULK_MAX_ITEMS.
    """

    def __init__(self, app: ASGIApp, max_size: int = 5 * 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        declared = request.headers.get("content-length", "")

        if declared.isdigit() and int(declared) > self.max_size:
            logger.warning(
                f"Rejected {request.method} {request.url.path}: body of {declared} bytes",
                extra={
                    "event_type": "request_too_large",
                    "content_length": int(declared),
                    "max_size": self.max_size,
                }
            )
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": {
                        "code": "PAYLOAD_TOO_LARGE",
                        "message": f"Request body exceeds {self.max_size // (1024 * 1024)}MB",
                        "details": {"max_bytes": self.max_size},
                    },
                },
            )

        return await call_next(request)
