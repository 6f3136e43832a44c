from sqlstore.db.models.session_store import SessionData

__all__ = ["SessionData"]
