"""Database fixtures for matcher tests.

Each test gets a fresh in-memory SQLite database with the products schema,
and a `make_product` factory for inserting rows.
"""
from typing import Any, Awaitable, Callable

import pytest_asyncio
from sqlalchemy import select

from crossmatch.db.base import Base, create_engine, create_session_maker
from crossmatch.db.models import Product


@pytest_asyncio.fixture
async def session_maker():
    """Session factory bound to a fresh in-memory database."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield create_session_maker(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def make_product(session_maker) -> Callable[..., Awaitable[Product]]:
    """Insert a product; article_number defaults to a running counter."""
    counter = {"n": 0}

    async def _make(retailer_slug: str, **fields: Any) -> Product:
        counter["n"] += 1
        fields.setdefault("article_number", f"ART-{counter['n']:04d}")
        product = Product(retailer_slug=retailer_slug, **fields)
        async with session_maker() as session:
            session.add(product)
            await session.commit()
        return product

    return _make


@pytest_asyncio.fixture
async def load_product(session_maker) -> Callable[[int], Awaitable[Product]]:
    """Reload a product from the database by id."""
    async def _load(product_id: int) -> Product:
        async with session_maker() as session:
            result = await session.execute(select(Product).where(Product.id == product_id))
            return result.scalar_one()

    return _load
