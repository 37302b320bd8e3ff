"""Database module."""
from crossmatch.db.base import (
    Base,
    TimestampMixin,
    engine,
    async_session_maker,
    create_engine,
    create_session_maker,
    get_session,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "engine",
    "async_session_maker",
    "create_engine",
    "create_session_maker",
    "get_session",
]
