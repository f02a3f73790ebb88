"""Database session configuration."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from storefront_chat.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import storefront_chat.models  # noqa: E402,F401


def _engine_options(url: str) -> dict[str, Any]:
    # aiosqlite connections are bound to the loop that opened them.
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True}


engine: AsyncEngine = create_async_engine(
    settings.effective_database_url,
    echo=settings.sql_debug,
    **_engine_options(settings.effective_database_url),
)

SessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for dependency injection."""
    async with SessionLocal() as db:
        yield db


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create all database tables."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind: AsyncEngine | None = None) -> None:
    """Drop all database tables."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
