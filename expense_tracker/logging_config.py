import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi.responses import JSONResponse

SERVICE_NAME = "expense-tracker"
REQUEST_ID_HEADER = "x-request-id"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
request_path_ctx: ContextVar[str | None] = ContextVar("request_path", default=None)


class RequestContextFilter(logging.Filter):
    """Stamps each record with the id and path of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get() or "-"
        record.request_path = request_path_ctx.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "path": getattr(record, "request_path", "-"),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def init_logging(debug: bool = False) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


async def request_context_middleware(request, call_next):  # type: ignore
    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    id_token = request_id_ctx.set(rid)
    path_token = request_path_ctx.set(f"{request.method} {request.url.path}")
    logger = logging.getLogger("expense_tracker.request")
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        logger.debug(
            "completed %s in %.1f ms",
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response
    finally:
        request_path_ctx.reset(path_token)
        request_id_ctx.reset(id_token)


def server_error_handler(request, exc: Exception):  # type: ignore
    logging.getLogger("expense_tracker.errors").error(
        "unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
