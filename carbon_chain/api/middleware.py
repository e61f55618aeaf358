"""
CarbonChain - API Middleware
==============================
Custom middleware for the platform REST API.
"""

import time
import uuid
from typing import Callable, List
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware

from carbon_chain.logging_setup import get_logger

logger = get_logger("api.middleware")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a request ID to each request.

    An incoming X-Request-ID header is reused, otherwise a new UUID is
    generated. The ID is echoed in the response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log API requests with timing information.

    Authorization headers and bodies are never logged.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client": client_ip,
        }
        if response.status_code >= 500:
            logger.error("Request failed", extra_data=log_data)
        else:
            logger.info("Request handled", extra_data=log_data)

        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Wallet and project payloads must never be cached by intermediaries.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"

        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = \
                "max-age=31536000; includeSubDomains"

        return response


def setup_cors_middleware(app: FastAPI, origins: List[str]) -> None:
    """Enable CORS for the configured origins"""
    allow_all = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else origins,
        # Credentials cannot be combined with a wildcard origin
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "X-Process-Time"],
    )


__all__ = [
    'RequestIDMiddleware',
    'RequestLoggingMiddleware',
    'SecurityHeadersMiddleware',
    'setup_cors_middleware',
    'REQUEST_ID_HEADER',
]
