"""Database-backed server-side sessions for Starlette/FastAPI applications."""

from sqlstore.core.exceptions import (
    CodecError,
    DecodeError,
    EncodeError,
    SessionStoreError,
    StoreError,
    SweepError,
)
from sqlstore.core.schemas.session import Options, SessionRecord
from sqlstore.core.utils.cleanup import ExpirySweeper, SweeperState
from sqlstore.core.utils.session_store import DatabaseStore, Session
from sqlstore.db.store_client import SQLAlchemyStoreClient, StoreClient

__all__ = [
    "CodecError",
    "DatabaseStore",
    "DecodeError",
    "EncodeError",
    "ExpirySweeper",
    "Options",
    "SQLAlchemyStoreClient",
    "Session",
    "SessionRecord",
    "SessionStoreError",
    "StoreClient",
    "StoreError",
    "SweepError",
    "SweeperState",
]
