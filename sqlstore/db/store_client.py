"""
Store clients for persisted session records.

``StoreClient`` is the contract the session store and sweeper depend on;
``SQLAlchemyStoreClient`` implements it on any SQLAlchemy-supported
database using the ``sessions`` table.
"""
from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sqlstore.core.exceptions import StoreError
from sqlstore.core.schemas.session import SessionRecord
from sqlstore.db.base import Base
from sqlstore.db.models.session_store import SessionData
from sqlstore.db.session import make_engine, make_session_factory, session_scope

logger = logging.getLogger(__name__)


@runtime_checkable
class StoreClient(Protocol):
    """Operations the session store needs from its backing database.

    Every method may raise ``StoreError``. A missing record is never an
    error: ``fetch_by_id`` returns None and ``delete_by_id`` does nothing.
    """

    def ensure_schema(self) -> None: ...

    def fetch_by_id(self, session_id: str) -> Optional[SessionRecord]: ...

    def upsert(self, session_id: str, record: SessionRecord) -> SessionRecord: ...

    def delete_by_id(self, session_id: str) -> None: ...

    def delete_expired(self, now: datetime) -> int: ...

    def close(self) -> None: ...


class SQLAlchemyStoreClient:
    """Session records in a relational database."""

    def __init__(self, engine: Engine, owns_engine: bool = False):
        self.engine = engine
        self._owns_engine = owns_engine
        self._session_factory = make_session_factory(engine)
        self._schema_ready = False
        self._schema_lock = Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "SQLAlchemyStoreClient":
        return cls(make_engine(database_url), owns_engine=True)

    def ensure_schema(self) -> None:
        """Create the sessions table if it does not exist."""
        if self._schema_ready:
            return

        with self._schema_lock:
            if self._schema_ready:
                return
            try:
                Base.metadata.create_all(
                    bind=self.engine,
                    tables=[SessionData.__table__],
                    checkfirst=True,
                )
            except SQLAlchemyError as e:
                logger.error(f"Failed to initialize session table: {e}")
                raise StoreError(f"unable to create sessions table: {e}") from e
            self._schema_ready = True
            logger.debug("Session table initialized")

    def fetch_by_id(self, session_id: str) -> Optional[SessionRecord]:
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(SessionData, session_id)
                if row is None:
                    return None
                return SessionRecord.model_validate(row)
        except SQLAlchemyError as e:
            raise StoreError(f"unable to load session: {e}") from e

    def upsert(self, session_id: str, record: SessionRecord) -> SessionRecord:
        """Insert or replace the row for ``session_id``."""
        values = record.model_dump(exclude={"id"})

        with session_scope(self._session_factory) as db:
            try:
                result = db.execute(
                    update(SessionData).where(SessionData.id == session_id).values(**values)
                )
                if result.rowcount == 0:
                    db.add(SessionData(id=session_id, **values))
                db.commit()
            except IntegrityError:
                # Another writer inserted the row between our UPDATE and INSERT
                db.rollback()
                logger.debug("Insert raced with another writer, retrying update")
                try:
                    db.execute(
                        update(SessionData)
                        .where(SessionData.id == session_id)
                        .values(**values)
                    )
                    db.commit()
                except SQLAlchemyError as e:
                    db.rollback()
                    raise StoreError(f"unable to save session: {e}") from e
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"unable to save session: {e}") from e

        return record.model_copy(update={"id": session_id})

    def delete_by_id(self, session_id: str) -> None:
        with session_scope(self._session_factory) as db:
            try:
                db.execute(delete(SessionData).where(SessionData.id == session_id))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"unable to delete session: {e}") from e

    def delete_expired(self, now: datetime) -> int:
        """Delete every record whose expiry is before ``now``."""
        with session_scope(self._session_factory) as db:
            try:
                result = db.execute(delete(SessionData).where(SessionData.expires_on < now))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"unable to delete expired sessions: {e}") from e
        return result.rowcount or 0

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()
