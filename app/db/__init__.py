"""Database sessions: `get_db` for request handlers, `get_db_session` for background work."""

from app.db.database import AsyncSessionLocal, Base, get_db, get_db_session, get_sync_db_session

__all__ = ["AsyncSessionLocal", "Base", "get_db", "get_db_session", "get_sync_db_session"]
