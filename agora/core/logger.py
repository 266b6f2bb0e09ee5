import logging
import sys
import time
import uuid
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler

import structlog
from structlog.dev import ConsoleRenderer
from fastapi import FastAPI, Request

from agora.core.config import settings


LOGS_DIR = Path(settings.LOGS_DIR)

SLOW_REQUEST_MS = 1000
REQUEST_ID_HEADER = "X-Request-ID"


SHARED = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=SHARED,
    )


def _file_handler(filename: str, level: int, backups: int, below_error: bool) -> TimedRotatingFileHandler:
    """JSON lines rotated at midnight; `below_error` splits daily.log from errors.log"""
    handler = TimedRotatingFileHandler(
        str(LOGS_DIR / filename),
        when="midnight",
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    if below_error:
        handler.addFilter(lambda record: record.levelno < logging.ERROR)
    handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    return handler


def configure_logging():
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.INFO)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(_formatter(ConsoleRenderer()))
    root.addHandler(console)

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    root.addHandler(_file_handler("daily.log", logging.INFO, backups=7, below_error=True))
    root.addHandler(_file_handler("errors.log", logging.ERROR, backups=30, below_error=False))

    structlog.configure(
        processors=[
            *SHARED,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger("agora")
reqlog = structlog.get_logger("agora.requests")


async def logging_middleware(request: Request, call_next):
    """Bind a request id for every event logged while serving the request; log failures and slow calls."""
    start = time.perf_counter()
    req_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=req_id,
        method=request.method,
        path=request.url.path,
    )

    try:
        response = await call_next(request)
    except Exception:
        reqlog.error("request_crashed", ms=(time.perf_counter() - start) * 1000, exc_info=True)
        raise

    ms = (time.perf_counter() - start) * 1000
    if response.status_code >= 500:
        reqlog.error("request_failed", status=response.status_code, ms=ms)
    elif response.status_code >= 400:
        reqlog.warning("request_client_error", status=response.status_code, ms=ms)
    elif ms >= SLOW_REQUEST_MS:
        reqlog.warning("request_slow", ms=ms)

    response.headers[REQUEST_ID_HEADER] = req_id
    return response


def register_logger(app: FastAPI):
    app.middleware("http")(logging_middleware)
