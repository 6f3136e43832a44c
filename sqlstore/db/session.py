from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # Request handlers and the sweeper thread share connections
        return {"check_same_thread": False}
    return {}


def make_engine(database_url: str, **kwargs: Any) -> Engine:
    """Create a database engine with appropriate connection args"""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # Every connection to an in-memory SQLite database is a new database
        kwargs.setdefault("poolclass", StaticPool)
    return create_engine(
        database_url,
        connect_args=get_connect_args(database_url),
        **kwargs,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Get a DB session with proper resource management"""
    db = factory()
    try:
        yield db
    finally:
        db.close()
