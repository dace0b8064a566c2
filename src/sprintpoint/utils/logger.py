"""Logging utilities for Sprintpoint."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog


class JsonLogFormatter(logging.Formatter):
    """JSON formatter for stdlib records (uvicorn, httpx) to align with structlog JSON output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logging(level: str = "INFO", json_logs: bool = False):
    """Configure structlog and the stdlib root logger.

    Library loggers (uvicorn, httpx) go through the stdlib root handler,
    application loggers go through structlog. Both honour ``level`` and
    both switch to JSON lines when ``json_logs`` is set. Both write to
    stderr; stdout is reserved for command output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=lambda *args: structlog.WriteLogger(sys.stderr),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates on re-setup
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    if json_logs:
        console_handler.setFormatter(JsonLogFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
