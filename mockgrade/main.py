from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
import json
import logging
import time

import uvicorn
from fastapi import FastAPI, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware

from mockgrade.config import logging_settings, settings
from mockgrade.dependencies.database import get_sessionmanager, initialize_db
from mockgrade.routers import broadsheet, network, series, settings as settings_router, students
from mockgrade.services.recompute_scheduler import recompute_scheduler

# Values under these `extra` keys never reach the log output
MASKED_KEYS = {"password", "token", "authorization", "email", "parent_contact"}
# Shown ahead of the message in text output
CONTEXT_KEYS = ("hub_id", "series")

_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class CustomFormatter(logging.Formatter):
    """Text or JSON-lines formatter that carries the record's `extra` fields."""

    def __init__(self, use_json: bool = False, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.use_json = use_json

    @staticmethod
    def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: "***" if key.lower() in MASKED_KEYS else value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
        }

    def format(self, record: logging.LogRecord) -> str:
        extra = self.extra_fields(record)

        if self.use_json:
            entry = {
                "timestamp": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **extra,
            }
            if record.exc_info:
                entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(entry, default=str)

        context = " ".join(str(extra.pop(key)) for key in CONTEXT_KEYS if extra.get(key) is not None)
        line = super().format(record)
        if context:
            line = f"[{context}] {line}"
        if extra:
            line += " | " + " ".join(f"{key}={value}" for key, value in extra.items())
        return line


def setup_logging() -> None:
    root = logging.getLogger()
    if getattr(root, "_mockgrade_configured", False):
        return
    root._mockgrade_configured = True

    handler = logging.StreamHandler()
    handler.setFormatter(
        CustomFormatter(
            use_json=logging_settings.LOG_FORMAT == "json",
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    )
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging_settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and the database, then keep broadsheets recomputing while the app runs."""
    setup_logging()

    async with initialize_db(get_sessionmanager()):
        recompute_scheduler.start()
        try:
            yield
        finally:
            await recompute_scheduler.stop()


app = FastAPI(title="Mock Examination Grading Service", lifespan=lifespan)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with the hub the request targets."""

    logger = logging.getLogger("http")

    @staticmethod
    def hub_of(request: Request) -> str | None:
        parts = request.url.path.strip("/").split("/")
        # /api/v1/hubs/{hub_id}/...
        if len(parts) > 3 and parts[2] == "hubs":
            return parts[3]
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        started = time.monotonic()
        context = {"method": request.method, "path": request.url.path, "hub_id": self.hub_of(request)}
        try:
            response = await call_next(request)
        except Exception as exc:
            self.logger.error(
                "request failed",
                exc_info=exc,
                extra={**context, "duration_ms": round((time.monotonic() - started) * 1000, 2)},
            )
            if logging_settings.ENV == "dev":
                raise
            return Response(content="Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        self.logger.info(
            "request completed",
            extra={
                **context,
                "status": response.status_code,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return response


app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

for module in (settings_router, students, broadsheet, series, network):
    app.include_router(module.router)


@app.get("/health", status_code=status.HTTP_200_OK)
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/", status_code=status.HTTP_200_OK)
def root() -> dict[str, Any]:
    return {"success": True, "service": "mockgrade"}


if __name__ == "__main__":
    uvicorn.run("mockgrade.main:app", host="0.0.0.0", port=8000, reload=settings.environment == "dev")
