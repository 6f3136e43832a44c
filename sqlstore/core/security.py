"""
Security utilities for the session store.

Random key material and session identifier generation, plus validation of
configured secrets.
"""

import base64
import logging
import secrets

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 32

# Secrets that must never sign production cookies
INSECURE_KEYS = {
    "secret",
    "secret-key",
    "change-me",
    "password",
    "your-secret-key-here-change-in-production",
}


def generate_random_key(length: int = 32) -> bytes:
    """
    Generate cryptographically secure random key material.

    Args:
        length: Number of random bytes (32 or 64 is recommended for hash keys)

    Returns:
        Random bytes suitable for a hash or block key
    """
    return secrets.token_bytes(length)


def generate_session_id() -> str:
    """
    Mint a new session identifier.

    32 random bytes, base32-encoded with the padding stripped so the id is
    safe to use as a primary key and inside a cookie.
    """
    raw = generate_random_key(SESSION_ID_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def validate_secret_key(secret_key: bytes, dev_mode: bool = False) -> None:
    """
    Validate that a hash key meets minimum requirements.

    Args:
        secret_key: The key to validate
        dev_mode: Only warn about weak keys instead of rejecting them

    Raises:
        ValueError: If the key is empty, or weak outside dev mode
    """
    if not secret_key:
        raise ValueError("session hash key cannot be empty")

    problems = []
    if len(secret_key) < 32:
        problems.append("shorter than 32 bytes")
    if secret_key.decode("utf-8", errors="ignore").lower() in INSECURE_KEYS:
        problems.append("a well-known default")

    if not problems:
        return

    message = f"session hash key is {' and '.join(problems)}"
    if dev_mode:
        logger.warning(message)
        return
    raise ValueError(message)
