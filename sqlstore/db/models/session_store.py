from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sqlstore.db.base import Base

SESSIONS_TABLE = "sessions"


class SessionData(Base):
    """Server-side session row. Timestamps are naive UTC."""

    __tablename__ = SESSIONS_TABLE

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    created_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    modified_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_on: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SessionData(id={self.id!r}, expires_on={self.expires_on!r})>"
