"""Server-side sessions persisted through a store client.

Only the session id travels in the cookie, signed by the codec pipeline.
Session values live in the ``sessions`` table, encoded with the same
codecs so a tampered row is rejected like a tampered cookie.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Tuple

from starlette.requests import Request
from starlette.responses import Response

from sqlstore.core.config import Settings
from sqlstore.core.exceptions import DecodeError
from sqlstore.core.logging_config import log_security_event
from sqlstore.core.schemas.session import Options
from sqlstore.core.security import generate_random_key, generate_session_id, validate_secret_key
from sqlstore.core.utils.cleanup import ExpirySweeper, SweeperState, stop_cleanup
from sqlstore.core.utils.encryption import CodecPipeline
from sqlstore.core.utils.record_mapper import from_record, to_record
from sqlstore.db.store_client import SQLAlchemyStoreClient, StoreClient
from sqlstore.web.registry import get_registry

logger = logging.getLogger(__name__)


class Session:
    """Request-scoped session state."""

    def __init__(self, store: "SessionBackend", name: str, options: Options):
        self.store = store
        self._name = name
        self.id = ""
        self.values: Dict[str, Any] = {}
        self.options = options
        self.is_new = True
        # Copied from the persisted record so saves never shorten its life
        self.created_on: Optional[datetime] = None
        self.expires_on: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self._name

    def save(self, request: Request, response: Response) -> None:
        self.store.save(request, response, self)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Session(name={self._name!r}, is_new={self.is_new})>"


class SessionBackend(Protocol):
    """What the per-request registry needs from a session store."""

    def new(self, request: Request, name: str) -> Session: ...

    def save(self, request: Request, response: Response, session: Session) -> None: ...


class DatabaseStore:
    """Session store keeping session values in a database."""

    def __init__(
        self,
        client: StoreClient,
        *key_pairs: Optional[bytes],
        options: Optional[Options] = None,
    ):
        self.client = client
        self.codecs = CodecPipeline.from_pairs(*key_pairs)
        self.options = options.model_copy() if options is not None else Options()
        self._sweeper: Optional[ExpirySweeper] = None
        self._sweeper_lock = threading.Lock()

        self.client.ensure_schema()
        self.max_age(self.options.max_age)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseStore":
        """Build a store, its database client and its keys from settings."""
        key_pairs = settings.key_pairs()
        if not key_pairs:
            if not settings.dev_mode:
                raise ValueError("SQLSTORE_SESSION_KEYS must be set outside dev mode")
            logger.warning("No session keys configured, using a random key for this process")
            key_pairs = [generate_random_key(64)]
        validate_secret_key(key_pairs[0], dev_mode=settings.dev_mode)

        options = Options(
            path=settings.cookie_path,
            domain=settings.cookie_domain,
            max_age=settings.max_age,
            secure=settings.secure_cookies,
        )
        store = cls(SQLAlchemyStoreClient.from_url(settings.database_url), *key_pairs, options=options)
        store.max_length(settings.max_length)
        return store

    def get(self, request: Request, name: str) -> Session:
        """Return the session ``name`` for this request, creating it once."""
        return get_registry(request).get(self, name)

    def new(self, request: Request, name: str) -> Session:
        """
        Return a session for ``name``, loaded from the database when the
        request carries a valid cookie.

        Invalid cookies, missing records and records that fail
        authentication all yield a new empty session.

        Raises:
            StoreError: If the database fails while loading
        """
        session = Session(self, name, self.options.model_copy())

        cookie = request.cookies.get(name)
        if cookie is not None:
            try:
                session_id = self.codecs.decode(name, cookie)
            except DecodeError as e:
                log_security_event(
                    "cookie_rejected",
                    f"Session cookie failed authentication: {e}",
                    level=logging.DEBUG,
                    ip_address=request.client.host if request.client else None,
                    extra_data={"cookie_name": name},
                )
            else:
                if isinstance(session_id, str) and session_id:
                    session.id = session_id
                    self._load(session)

        # Keep codec token age in step with the store default
        self.max_age(self.options.max_age)
        return session

    def save(self, request: Request, response: Response, session: Session) -> None:
        """
        Persist ``session`` and set its cookie on ``response``.

        A negative ``max_age`` deletes the record and clears the cookie.

        Raises:
            EncodeError: If the values or the cookie cannot be encoded
            StoreError: If the database write fails
        """
        options = session.options

        if options.max_age < 0:
            if session.id:
                self.client.delete_by_id(session.id)
            response.delete_cookie(
                session.name,
                path=options.path,
                domain=options.domain,
                secure=options.secure,
                httponly=options.httponly,
                samesite=options.samesite,
            )
            return

        if not session.id:
            session.id = generate_session_id()

        record = to_record(session, self.codecs)
        self.client.upsert(session.id, record)
        session.created_on = record.created_on
        session.expires_on = record.expires_on

        encoded = self.codecs.encode(session.name, session.id)
        max_age = options.max_age or None
        response.set_cookie(
            session.name,
            encoded,
            max_age=max_age,
            expires=max_age,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.httponly,
            samesite=options.samesite,
        )

    def max_age(self, age: int) -> None:
        """
        Set the default session lifetime and the codecs' token age limit.

        Individual sessions are deleted by setting ``options.max_age = -1``.
        """
        self.options.max_age = age
        self.codecs.set_max_age(age)

    def max_length(self, length: int) -> None:
        """Limit encoded cookie and payload length. 0 removes the limit."""
        self.codecs.set_max_length(length)

    def cleanup(self, interval: Optional[float] = None) -> Tuple[threading.Event, threading.Event]:
        """
        Start deleting expired sessions every ``interval`` seconds.

        Returns:
            ``(quit, done)`` handles for ``stop_cleanup``
        """
        with self._sweeper_lock:
            if self._sweeper is not None and self._sweeper.state is SweeperState.RUNNING:
                raise RuntimeError("expired session cleanup is already running")
            self._sweeper = ExpirySweeper(self.client, interval)
            return self._sweeper.start()

    def stop_cleanup(self, quit_event: threading.Event, done_event: threading.Event) -> None:
        """Stop the cleanup started with ``cleanup`` and wait for it to exit."""
        with self._sweeper_lock:
            sweeper = self._sweeper
            if sweeper is not None and sweeper.handles == (quit_event, done_event):
                sweeper.stop()
                self._sweeper = None
                return
        stop_cleanup(quit_event, done_event)

    def close(self) -> None:
        with self._sweeper_lock:
            if self._sweeper is not None:
                self._sweeper.stop()
                self._sweeper = None
        self.client.close()

    def _load(self, session: Session) -> bool:
        record = self.client.fetch_by_id(session.id)
        if record is None:
            logger.debug("Session record not found, starting a new session")
            return False

        try:
            from_record(record, session, self.codecs)
        except DecodeError as e:
            log_security_event(
                "record_rejected",
                f"Stored session data failed authentication: {e}",
                level=logging.WARNING,
            )
            return False

        session.is_new = False
        return True
