"""Example FastAPI application using database-backed sessions."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sqlstore.core.config import Settings, settings as default_settings
from sqlstore.core.exceptions import StoreError
from sqlstore.core.logging_config import configure_logging
from sqlstore.core.utils.session_store import DatabaseStore
from sqlstore.web.middleware import CorrelationIdMiddleware

logger = logging.getLogger("sqlstore.main")

SESSION_NAME = "session"


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(f"Session store unavailable: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Session store unavailable"})


def create_app(
    settings: Optional[Settings] = None, store: Optional[DatabaseStore] = None
) -> FastAPI:
    """Create the app. A given ``store`` is used as-is instead of one built from settings."""
    settings = settings or default_settings
    configure_logging(settings)
    store = store or DatabaseStore.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        quit_event, done_event = store.cleanup(settings.cleanup_interval)
        try:
            yield
        finally:
            store.stop_cleanup(quit_event, done_event)
            store.close()

    app = FastAPI(title="sqlstore example", lifespan=lifespan)
    app.state.store = store
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_middleware(CorrelationIdMiddleware)

    @app.get("/")
    def counter(request: Request):
        session = store.get(request, SESSION_NAME)
        is_new = session.is_new
        session.values["counter"] = session.values.get("counter", 0) + 1

        response = JSONResponse({"counter": session.values["counter"], "new": is_new})
        session.save(request, response)
        return response

    @app.post("/logout")
    def logout(request: Request):
        session = store.get(request, SESSION_NAME)
        session.options.max_age = -1

        response = JSONResponse({"logged_out": True})
        session.save(request, response)
        return response

    return app
