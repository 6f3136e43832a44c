"""
Unit tests for configuration and key handling
"""

import os
from unittest.mock import patch

import pytest

from sqlstore.core.config import DEFAULT_CLEANUP_INTERVAL, DEFAULT_MAX_AGE, Settings
from sqlstore.core.security import generate_session_id, validate_secret_key

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


class TestSettings:
    """Test store settings configuration"""

    def test_default_settings(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.session_keys == []
        assert settings.cookie_path == "/"
        assert settings.cookie_domain is None
        assert settings.max_age == DEFAULT_MAX_AGE
        assert settings.max_length == 4096
        assert settings.cleanup_interval == DEFAULT_CLEANUP_INTERVAL
        assert settings.secure_cookies is False

    def test_session_keys_comma_separated(self):
        with patch.dict(os.environ, {"SQLSTORE_SESSION_KEYS": "first, second"}):
            settings = Settings(_env_file=None)

        assert settings.session_keys == ["first", "second"]
        assert settings.key_pairs() == [b"first", b"second"]

    def test_session_keys_json(self):
        with patch.dict(os.environ, {"SQLSTORE_SESSION_KEYS": '["a", "b", "c"]'}):
            settings = Settings(_env_file=None)

        assert settings.session_keys == ["a", "b", "c"]

    def test_environment_override(self):
        with patch.dict(os.environ, {
            "SQLSTORE_MAX_AGE": "900",
            "SQLSTORE_CLEANUP_INTERVAL": "0.5",
            "SQLSTORE_SECURE_COOKIES": "true",
        }):
            settings = Settings(_env_file=None)

        assert settings.max_age == 900
        assert settings.cleanup_interval == 0.5
        assert settings.secure_cookies is True


class TestSecurity:
    """Test key validation and session id generation"""

    def test_session_id_format(self):
        session_id = generate_session_id()

        # 32 bytes in base32 without padding
        assert len(session_id) == 52
        assert "=" not in session_id
        assert session_id.isalnum() and session_id.upper() == session_id

    def test_session_ids_are_unique(self):
        assert len({generate_session_id() for _ in range(100)}) == 100

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            validate_secret_key(b"", dev_mode=True)

    def test_weak_key_rejected_outside_dev_mode(self):
        with pytest.raises(ValueError):
            validate_secret_key(b"secret")

    def test_weak_key_allowed_in_dev_mode(self, caplog):
        validate_secret_key(b"secret", dev_mode=True)

        assert "session hash key" in caplog.text
