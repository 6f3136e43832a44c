"""
Test helpers for building requests, reading responses and faking the store.
"""

import threading
from datetime import datetime
from http.cookies import SimpleCookie
from typing import Dict, List, Optional

from starlette.requests import Request
from starlette.responses import Response

from sqlstore.core.exceptions import StoreError
from sqlstore.core.schemas.session import SessionRecord


def make_request(cookies: Optional[Dict[str, str]] = None) -> Request:
    """Build a bare GET request carrying ``cookies``."""
    headers = []
    if cookies:
        header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        headers.append((b"cookie", header.encode("latin-1")))
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": headers,
    }
    return Request(scope)


def set_cookies(response: Response) -> SimpleCookie:
    """Parse every Set-Cookie header of ``response``."""
    jar: SimpleCookie = SimpleCookie()
    for header in response.headers.getlist("set-cookie"):
        jar.load(header)
    return jar


def cookie_value(response: Response, name: str) -> Optional[str]:
    morsel = set_cookies(response).get(name)
    return morsel.value if morsel is not None else None


class FakeStoreClient:
    """In-memory store client with switchable failures."""

    def __init__(self):
        self.records: Dict[str, SessionRecord] = {}
        self.schema_calls = 0
        self.sweeps: List[datetime] = []
        self.fail_fetch = False
        self.fail_upsert = False
        self.fail_delete = False
        self.fail_sweep = False
        self.closed = False
        self._lock = threading.Lock()

    def ensure_schema(self) -> None:
        self.schema_calls += 1

    def fetch_by_id(self, session_id: str) -> Optional[SessionRecord]:
        if self.fail_fetch:
            raise StoreError("connection refused")
        with self._lock:
            return self.records.get(session_id)

    def upsert(self, session_id: str, record: SessionRecord) -> SessionRecord:
        if self.fail_upsert:
            raise StoreError("connection refused")
        with self._lock:
            self.records[session_id] = record
        return record

    def delete_by_id(self, session_id: str) -> None:
        if self.fail_delete:
            raise StoreError("connection refused")
        with self._lock:
            self.records.pop(session_id, None)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            self.sweeps.append(now)
            if self.fail_sweep:
                raise StoreError("connection refused")
            expired = [key for key, rec in self.records.items() if rec.expires_on < now]
            for key in expired:
                del self.records[key]
        return len(expired)

    def close(self) -> None:
        self.closed = True
