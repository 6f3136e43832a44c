"""Conversion between in-memory sessions and persisted session records."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from sqlstore.core.exceptions import DecodeError
from sqlstore.core.schemas.session import SessionRecord
from sqlstore.core.utils.clock import utcnow
from sqlstore.core.utils.encryption import CodecPipeline

if TYPE_CHECKING:
    from sqlstore.core.utils.session_store import Session


def compute_expiry(
    prior_expiry: Optional[datetime], max_age: int, now: datetime
) -> datetime:
    """Expiry for a save at ``now``. A save may extend a record's life, never shorten it."""
    requested = now + timedelta(seconds=max_age)
    if prior_expiry is None:
        return requested
    return max(prior_expiry, requested)


def to_record(
    session: Session, codecs: CodecPipeline, now: Optional[datetime] = None
) -> SessionRecord:
    """
    Build the persisted record for ``session``.

    Raises:
        EncodeError: If the values cannot be encoded or are too long
    """
    data = codecs.encode(session.name, session.values)
    now = now or utcnow()
    return SessionRecord(
        id=session.id,
        data=data,
        created_on=session.created_on or now,
        modified_on=now,
        expires_on=compute_expiry(session.expires_on, session.options.max_age, now),
    )


def from_record(record: SessionRecord, session: Session, codecs: CodecPipeline) -> None:
    """
    Decode ``record`` into ``session``.

    The session is only modified when decoding succeeds, so on failure the
    caller still holds a fresh session.

    Raises:
        DecodeError: If the stored data fails authentication or is not a mapping
    """
    values = codecs.decode(session.name, record.data)
    if not isinstance(values, dict):
        raise DecodeError("stored session data is not a mapping")

    session.values = values
    session.created_on = record.created_on
    session.expires_on = record.expires_on
