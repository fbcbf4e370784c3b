"""
Logging configuration for alerthub.

Configures the stdlib root logger once (colour console or JSON lines, optional
rotating file). Services emit through structlog, which renders into these
handlers via the root logger.
"""
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from alerthub.config import get_settings
from alerthub.core.request_context import request_id_var

_CONFIGURED = False

_RESERVED_ATTRS = {
    "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "msg", "name", "pathname", "process",
    "processName", "relativeCreated", "stack_info", "taskName", "thread", "threadName",
}


class ContextFilter(logging.Filter):
    """Injects request_id and service/env fields into every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        rid = getattr(record, "request_id", None) or request_id_var.get()
        if rid is not None:
            record.request_id = rid
        if not hasattr(record, "service"):
            record.service = "alerthub"
        if not hasattr(record, "env"):
            record.env = get_settings().app_env
        return True


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"
        return super().format(record)


REDACT_KEYS = {"password", "secret", "token", "authorization", "jwt", "webhook_url"}
_REDACTED = "***REDACTED***"


def redact_event_dict(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking credential-like keys before rendering."""
    for key in event_dict:
        if key.lower() in REDACT_KEYS:
            event_dict[key] = _REDACTED
    return event_dict


class JSONFormatter(logging.Formatter):
    """JSON line formatter.

    Emits time, level, name and message, merges extra record attributes and
    masks values whose key looks like a credential.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        rid = getattr(record, "request_id", None) or request_id_var.get()
        if rid:
            payload["request_id"] = rid

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            payload[key] = _REDACTED if key.lower() in REDACT_KEYS else value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(
    name: Optional[str] = None,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_color: bool = True,
) -> logging.Logger:
    """Configure the root logger (idempotent).

    Args:
        name: logger name to return
        level: overrides ``Settings.log_level``
        log_file: overrides ``Settings.log_file``
        use_color: colour console output when attached to a TTY

    Returns:
        logging.Logger: the named logger
    """
    global _CONFIGURED
    logger = logging.getLogger(name or "alerthub")
    if _CONFIGURED:
        return logger

    settings = get_settings()
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context_filter)
    if settings.log_json:
        console_formatter: logging.Formatter = JSONFormatter(datefmt=settings.log_date_format)
    elif use_color and sys.stdout.isatty():
        console_formatter = ColoredFormatter(settings.log_format, datefmt=settings.log_date_format)
    else:
        console_formatter = logging.Formatter(settings.log_format, datefmt=settings.log_date_format)
    console_handler.setFormatter(console_formatter)
    root.addHandler(console_handler)

    file_path = log_file or settings.log_file
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(context_filter)
        if settings.log_json:
            file_handler.setFormatter(JSONFormatter(datefmt=settings.log_date_format))
        else:
            file_handler.setFormatter(logging.Formatter(settings.log_format, datefmt=settings.log_date_format))
        root.addHandler(file_handler)

    # route server loggers through the root handlers
    for log_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        lg = logging.getLogger(log_name)
        lg.handlers = []
        lg.propagate = True

    # structlog events land in the same handlers; JSON mode keeps the fields as record extras
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        redact_event_dict,
    ]
    if settings.log_json:
        processors.append(structlog.stdlib.render_to_log_kwargs)
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    _CONFIGURED = True
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
