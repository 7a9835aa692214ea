"""
Structured logging with structlog.

Every record, whether it comes from structlog.get_logger() or a plain
logging.getLogger(__name__), is rendered as one JSON line on stderr and
in a size-rotated file. Request and submission ids held in context
variables are attached automatically, so a submission can be followed
from the HTTP request through clip writes to the store append.
"""
from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import time
from contextvars import ContextVar
from typing import Optional

import structlog

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
# Set while one submission is being persisted
feedback_id_var: ContextVar[str | None] = ContextVar("feedback_id", default=None)

_CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("correlation_id", correlation_id_var),
    ("feedback_id", feedback_id_var),
)

APP_VERSION = "1.0.0"
SERVICE_NAME = "crownedgear-feedback"

NOISY_LOGGERS = ("httpcore", "httpx", "asyncio", "watchfiles", "multipart", "python_multipart")

_startup_time: float = time.time()


def get_uptime_s() -> float:
    return time.time() - _startup_time


def _inject_context(logger_name: str, method_name: str, event_dict: dict) -> dict:
    """Structlog processor: service identity plus whichever context ids are set."""
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = APP_VERSION
    for key, var in _CONTEXT_FIELDS:
        value = var.get(None)
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


def _lowercase_level(logger_name: str, method_name: str, event_dict: dict) -> dict:
    level = event_dict.get("level")
    if level:
        event_dict["level"] = level.lower()
    return event_dict


def _rotating_file_handler(
    log_dir: str, log_file: str, max_bytes: int, backup_count: int,
) -> Optional[logging.Handler]:
    """File handler, or None when the directory cannot be created or opened."""
    try:
        os.makedirs(log_dir, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"file logging disabled ({log_dir}/{log_file}): {e}\n")
        return None


def setup_logging(
    log_dir: str = "logs",
    log_file: str = "feedback.jsonl",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    log_level: int | str = logging.INFO,
) -> None:
    """Configure structlog and the stdlib root logger. Safe to call again."""
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _lowercase_level,
        structlog.stdlib.add_logger_name,
        # stdlib ``extra={...}`` keys become JSON fields
        structlog.stdlib.ExtraAdder(),
        _inject_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    file_handler = _rotating_file_handler(log_dir, log_file, max_bytes, backup_count)
    if file_handler is not None:
        handlers.append(file_handler)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
