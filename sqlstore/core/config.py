"""
Store configuration using Pydantic Settings.

Configuration values can be set via environment variables (prefix
``SQLSTORE_``) or a .env file.
"""

import json
from typing import Annotated, Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_MAX_AGE = 86400 * 30
DEFAULT_CLEANUP_INTERVAL = 300


class Settings(BaseSettings):
    """Session store settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SQLSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = "sqlite:///./data/sessions.db"

    # Ordered secrets: hash key, block key, hash key, block key, ...
    # The first pair signs new cookies; later pairs only verify old ones.
    session_keys: Annotated[List[str], NoDecode] = []

    # Default cookie options
    cookie_path: str = "/"
    cookie_domain: Optional[str] = None
    secure_cookies: bool = False
    max_age: int = DEFAULT_MAX_AGE

    # Maximum encoded size of cookies and stored payloads, 0 disables the check
    max_length: int = 4096

    # Seconds between expired-session sweeps
    cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL

    dev_mode: bool = False

    @field_validator("session_keys", mode="before")
    @classmethod
    def parse_session_keys(cls, value: Any) -> List[str]:
        """Accept a JSON list or a comma-separated string."""
        if value is None or value == "":
            return []
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return [str(item) for item in json.loads(stripped)]
            return [item.strip() for item in stripped.split(",")]
        return list(value)

    def key_pairs(self) -> List[bytes]:
        """Session keys as the byte strings the codecs expect."""
        return [key.encode("utf-8") for key in self.session_keys]


# Global settings instance
settings = Settings()
