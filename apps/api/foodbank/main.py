"""FastAPI application for the client import API."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from fastapi import FastAPI

from foodbank.core.config import settings
from foodbank.core.errors import setup_error_handlers
from foodbank.core.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    setup_cors,
)
from foodbank.imports.routes import router as imports_router

API_PREFIX = "/api/v1"

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> None:
    """Send all logs to stdout, as JSON unless ``log_format`` is text."""
    if settings.log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    # Replace, not append, so reloads don't duplicate lines
    root_logger.handlers = [handler]

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


setup_logging()

app = FastAPI(
    title=f"{settings.charity_name} Client Import API",
    version="0.1.0",
)

setup_error_handlers(app, debug=(settings.app_env != "production"))

# Last added runs first, so request IDs exist before logging reads them
if settings.enable_request_logging:
    app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
setup_cors(app)

app.include_router(imports_router, prefix=API_PREFIX)


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok", "env": settings.app_env, "version": app.version}
