"""
Structured Logging with Correlation - v2.3
==========================================

JSON-structured logging with a correlation id shared by every log line
of one HTTP request or one scheduled job run.

Features:
1. JSON log format for production (parseable by log aggregators)
2. Request correlation via X-Request-ID header
3. Job correlation via job_context("sync_results")
4. Redaction of sensitive extra fields (password, token, secret, ...)

Usage:
    from core.structured_logging import (
        configure_structured_logging,
        job_context,
        log_with_context,
        RequestCorrelationMiddleware,
    )

    # In main.py startup:
    configure_structured_logging()
    app.add_middleware(RequestCorrelationMiddleware)

    # In a scheduled job:
    with job_context("capture_lines"):
        capture_due_lines()

    # In any module:
    logger = logging.getLogger(__name__)
    logger.info("Lines captured", extra={"game": "game:42"})
"""

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Context variable for request / job correlation
_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = ("password", "token", "secret", "api_key", "apikey", "authorization")


def get_request_id() -> Optional[str]:
    """Get the current correlation id from context."""
    return _request_id_ctx.get()


def set_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)


def clear_request_id() -> None:
    _request_id_ctx.set(None)


def generate_request_id(prefix: str = "req") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower().replace("-", "_")
    return any(s in lowered for s in SENSITIVE_KEYS)


def redact(key: str, value: Any) -> Any:
    if is_sensitive_key(key):
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(str(k), v) for k, v in value.items()}
    return value


@contextmanager
def job_context(job_name: str) -> Iterator[str]:
    """Give a scheduled job run its own correlation id."""
    job_id = generate_request_id(f"job-{job_name}")
    token = _request_id_ctx.set(job_id)
    try:
        yield job_id
    finally:
        _request_id_ctx.reset(token)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with correlation id and secret redaction.

    Output format:
    {
        "timestamp": "2026-01-28T10:30:45.123456+00:00",
        "level": "INFO",
        "logger": "grading_engine",
        "message": "game:42 outcome: margin 5 ...",
        "request_id": "job-sync_results-abc123def456",
        "module": "grading_engine",
        "function": "calculate_result",
        "line": 234,
        ... extra fields ...
    }
    """

    # Fields to exclude from extra (already handled or internal)
    EXCLUDE_FIELDS = {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        log_entry["module"] = record.module
        log_entry["function"] = record.funcName
        log_entry["line"] = record.lineno

        for key, value in record.__dict__.items():
            if key not in self.EXCLUDE_FIELDS and not key.startswith("_"):
                log_entry[key] = redact(key, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """
    Human-readable text formatter with correlation id.

    2026-01-28 10:30:45.123 [INFO] [job-sync_results-abc] grading_engine:sync_results:301 - Result sync: ...
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        request_id = get_request_id() or "-"
        base = (
            f"{timestamp} [{record.levelname}] [{request_id}] "
            f"{record.name}:{record.funcName}:{record.lineno} - {record.getMessage()}"
        )
        if record.exc_info:
            base += f"\n{self.formatException(record.exc_info)}"
        return base


class RequestCorrelationMiddleware(BaseHTTPMiddleware):
    """
    Extract or generate X-Request-ID, store it for logging, echo it back.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or generate_request_id()
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            clear_request_id()


def configure_structured_logging(level: str = None, format_type: str = None) -> None:
    """
    Configure root logging once at startup.

    Args:
        level: DEBUG/INFO/WARNING/ERROR. Defaults to Config.LOG_LEVEL.
        format_type: "json" or "text". Defaults to Config.LOG_FORMAT.
    """
    from env_config import Config

    level = (level or Config.LOG_LEVEL).upper()
    format_type = format_type or Config.LOG_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type.lower() == "json" else TextFormatter())
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    for noisy_logger in ["urllib3", "apscheduler", "sqlalchemy.engine", "asyncio"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def log_with_context(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """
    Log a message with additional context fields.

    Example:
        log_with_context(logger, logging.WARNING, "Grade skipped",
                         pick="pick:7", reason="no final score")
    """
    logger.log(level, message, extra=extra)
