"""Session option and persisted record schema definitions."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from sqlstore.core.config import DEFAULT_MAX_AGE


class Options(BaseModel):
    """Cookie attributes and lifetime of a session.

    ``max_age`` is in seconds: negative deletes the session on save, zero
    makes a browser-session cookie, positive expires the cookie (and the
    stored record) that many seconds after the save.
    """

    path: str = Field("/", description="Cookie path")
    domain: Optional[str] = Field(None, description="Cookie domain")
    max_age: int = Field(DEFAULT_MAX_AGE, description="Lifetime in seconds")
    secure: bool = Field(False, description="Send the cookie over HTTPS only")
    httponly: bool = Field(True, description="Hide the cookie from scripts")
    samesite: Optional[Literal["lax", "strict", "none"]] = Field(
        "lax", description="SameSite cookie attribute"
    )

    model_config = ConfigDict(validate_assignment=True)


class SessionRecord(BaseModel):
    """Persisted shape of a session row."""

    id: str
    data: str = Field(..., description="Authenticated, encoded session values")
    created_on: datetime
    modified_on: datetime
    expires_on: datetime

    model_config = ConfigDict(from_attributes=True)
