"""Base SQLAlchemy configuration and mixins."""
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool
from sqlalchemy import func
from datetime import datetime
from typing import Any, Dict

from crossmatch.config import settings


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models with async support."""
    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool options for the given backend."""
    if database_url.startswith("sqlite"):
        # In-memory SQLite must share a single connection across sessions
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Verify connection health before use
    }


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine configured for the backend in the URL."""
    return create_async_engine(database_url, echo=echo, **_engine_options(database_url))


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Create an async session factory bound to an engine."""
    return async_sessionmaker(bind, expire_on_commit=False)


# Create async engine
engine = create_engine(settings.database_url)

# Create async session factory
async_session_maker = create_session_maker(engine)


async def get_session():
    """Get async database session (async generator)."""
    async with async_session_maker() as session:
        yield session
