"""
Logging setup for the session store.

Records are written one JSON object per line. Extra fields whose names look
like session material or secrets are redacted unless sensitive logging is
enabled (dev mode). Cookie and record rejections go to the
``security.events`` logger, stamped with the correlation id of the request
that triggered them.
"""

import json
import logging
import logging.config
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlstore.core.config import Settings, settings

# Set per request by CorrelationIdMiddleware
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

SECURITY_LOGGER = "security.events"
REDACTED = "[REDACTED]"
SENSITIVE_FIELDS = ("session", "cookie", "key", "secret", "token", "password")

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "correlation_id",
}


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the correlation id of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get()
        return True


class JsonFormatter(logging.Formatter):
    """Render records as JSON with sensitive extras redacted."""

    def __init__(self, include_sensitive: bool = False):
        super().__init__()
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None) or correlation_id_ctx.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            name: self._redact(name, value)
            for name, value in vars(record).items()
            if name not in _RECORD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)

    def _redact(self, name: str, value: Any) -> Any:
        if self.include_sensitive:
            return value
        lowered = name.lower()
        if any(word in lowered for word in SENSITIVE_FIELDS):
            return REDACTED
        return value


def configure_logging(config: Settings = settings) -> None:
    """
    Configure root logging from the store settings.

    Dev mode logs plain text at DEBUG with sensitive fields visible;
    otherwise JSON at INFO with sensitive fields redacted.
    """
    dev_mode = config.dev_mode

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": CorrelationIdFilter},
        },
        "formatters": {
            "json": {"()": JsonFormatter, "include_sensitive": dev_mode},
            "plain": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "plain" if dev_mode else "json",
                "filters": ["correlation"],
            },
        },
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
            "uvicorn.access": {"level": "WARNING"},
        },
        "root": {
            "level": "DEBUG" if dev_mode else "INFO",
            "handlers": ["console"],
        },
    })

    logging.getLogger("sqlstore.startup").info(
        "Logging configured", extra={"dev_mode": dev_mode}
    )


def log_security_event(
    event_type: str,
    message: str,
    level: int = logging.INFO,
    ip_address: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log a security event with structured data.

    Args:
        event_type: Type of security event (cookie_rejected, record_rejected, ...)
        message: Human-readable message
        level: Logging level of the event
        ip_address: Optional client address
        extra_data: Additional structured data
    """
    data: Dict[str, Any] = {"event_type": event_type}
    if ip_address:
        data["ip_address"] = ip_address
    if extra_data:
        data.update(extra_data)

    logging.getLogger(SECURITY_LOGGER).log(level, message, extra=data)
