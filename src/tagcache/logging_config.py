"""
TagCache — Logging Setup

Plain-text or structured JSON logging for the ``tagcache`` logger tree.
JSON lines carry the tenant bound to the current context, if any.
"""

import json
import logging
from datetime import UTC, datetime

from .config import get_config
from .context import peek_current_tenant

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "module",
        "message",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        tenant_id = peek_current_tenant()
        if tenant_id:
            log_data["tenant_id"] = tenant_id

        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | None = None, json_format: bool | None = None) -> logging.Logger:
    """
    Attach a single stream handler to the ``tagcache`` logger.

    Args:
        level: Log level name; defaults to the configured ``LOG_LEVEL``
        json_format: Emit JSON lines; defaults to the configured ``LOG_JSON``

    Calling it again replaces the previous handler.
    """
    if level is None or json_format is None:
        config = get_config()
        level = level if level is not None else config.log_level
        json_format = json_format if json_format is not None else config.log_json

    logger = logging.getLogger("tagcache")
    logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
