"""
Unit tests for structured logging and security events
"""

import io
import json
import logging
import sys

import pytest

from sqlstore.core.logging_config import (
    REDACTED,
    SECURITY_LOGGER,
    CorrelationIdFilter,
    JsonFormatter,
    correlation_id_ctx,
    log_security_event,
)

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


@pytest.fixture
def security_stream():
    """Capture the security logger's output through the JSON formatter"""
    logger = logging.getLogger(SECURITY_LOGGER)
    original_level = logger.level
    logger.setLevel(logging.DEBUG)
    handlers = []

    def _attach(include_sensitive: bool = False) -> io.StringIO:
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter(include_sensitive=include_sensitive))
        handler.addFilter(CorrelationIdFilter())
        logger.addHandler(handler)
        handlers.append(handler)
        return stream

    yield _attach

    for handler in handlers:
        logger.removeHandler(handler)
    logger.setLevel(original_level)


class TestJsonFormatter:
    """Test JSON rendering and redaction of security events"""

    def test_cookie_rejected_event(self, security_stream):
        stream = security_stream()
        token = correlation_id_ctx.set("req-123")
        try:
            log_security_event(
                "cookie_rejected",
                "Session cookie failed authentication: the value is not valid",
                level=logging.DEBUG,
                ip_address="10.0.0.1",
                extra_data={"cookie_name": "session"},
            )
        finally:
            correlation_id_ctx.reset(token)

        entry = json.loads(stream.getvalue().strip())

        assert entry["level"] == "DEBUG"
        assert entry["logger"] == SECURITY_LOGGER
        assert entry["message"].startswith("Session cookie failed authentication")
        assert entry["correlation_id"] == "req-123"
        assert entry["extra"]["event_type"] == "cookie_rejected"
        assert entry["extra"]["ip_address"] == "10.0.0.1"
        assert entry["extra"]["cookie_name"] == REDACTED

    def test_sensitive_fields_visible_when_enabled(self, security_stream):
        stream = security_stream(include_sensitive=True)

        log_security_event("cookie_rejected", "rejected", extra_data={"cookie_name": "session"})

        entry = json.loads(stream.getvalue().strip())
        assert entry["extra"]["cookie_name"] == "session"

    def test_session_fields_redacted(self):
        formatter = JsonFormatter()
        record = logging.LogRecord("sqlstore", logging.INFO, __file__, 1, "saved", None, None)
        record.session_id = "ABCDEF"
        record.deleted = 3

        entry = json.loads(formatter.format(record))

        assert entry["extra"] == {"session_id": REDACTED, "deleted": 3}
        assert "correlation_id" not in entry

    def test_exception_included(self):
        formatter = JsonFormatter()
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "sqlstore", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        entry = json.loads(formatter.format(record))

        assert "RuntimeError: boom" in entry["exception"]
