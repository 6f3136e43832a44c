"""Per-request session registry.

Sessions fetched through ``DatabaseStore.get`` are cached on
``request.state`` so every caller within one request shares the same
``Session`` object for a given name.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from starlette.requests import Request
from starlette.responses import Response

if TYPE_CHECKING:
    from sqlstore.core.utils.session_store import Session, SessionBackend

REGISTRY_STATE_KEY = "sqlstore_registry"


class Registry:
    """Sessions opened during a single request."""

    def __init__(self, request: Request):
        self.request = request
        self._sessions: Dict[str, "Session"] = {}

    def get(self, store: "SessionBackend", name: str) -> "Session":
        session = self._sessions.get(name)
        if session is None:
            session = store.new(self.request, name)
            self._sessions[name] = session
        return session

    @property
    def sessions(self) -> List["Session"]:
        return list(self._sessions.values())

    def save(self, response: Response) -> None:
        """Save every session opened during the request."""
        for session in self._sessions.values():
            session.save(self.request, response)


def get_registry(request: Request) -> Registry:
    registry = getattr(request.state, REGISTRY_STATE_KEY, None)
    if registry is None:
        registry = Registry(request)
        setattr(request.state, REGISTRY_STATE_KEY, registry)
    return registry


def save_sessions(request: Request, response: Response) -> None:
    get_registry(request).save(response)
