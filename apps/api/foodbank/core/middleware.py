"""Request ID, request logging and CORS middleware."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from foodbank.core.config import settings

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Development frontends
DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request and response with a request ID."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one JSON line per request and one per response.

    Bodies are never logged: an import body holds clients' names and
    addresses. Only its size is recorded.
    """

    def __init__(self, app, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/docs", "/openapi.json", "/redoc"]

    def _log(self, level: int, request_id: str, **fields) -> None:
        logger.log(
            level,
            json.dumps({"timestamp": time.time(), "request_id": request_id, **fields}, default=str),
            extra={"request_id": request_id},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        request_id = getattr(request.state, "request_id", "unknown")
        route = {"method": request.method, "path": request.url.path}
        body_size = request.headers.get("content-length")
        self._log(
            logging.INFO,
            request_id,
            type="http_request",
            client_host=request.client.host if request.client else None,
            request_body_size=int(body_size) if body_size and body_size.isdigit() else None,
            **route,
        )

        started = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            if status_code >= 500:
                level = logging.ERROR
            elif status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO
            self._log(
                level,
                request_id,
                type="http_response",
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                **route,
            )

        response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"
        return response


def setup_cors(app) -> None:
    """Allow configured origins; dev frontends outside production."""
    origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
    if not origins and settings.app_env != "production":
        origins = DEV_ORIGINS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "X-Process-Time"],
    )
