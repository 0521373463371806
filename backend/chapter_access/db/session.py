from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chapter_access.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    # sqlite (local runs, tests) has no server connections to ping or recycle
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,  # membership tables live on a managed Postgres that drops idle conns
        "pool_recycle": 300,
    }


def build_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, echo=False, **_engine_options(url))


# CLEAN url: asyncpg rejects sslmode / channel_binding query params
engine: AsyncEngine = build_engine(settings.DATABASE_URL_ASYNC_CLEAN)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One AsyncSession per request.

    Access checks only read, so nothing is committed here. Role assignments
    are re-read on every request through this session.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def close_engine() -> None:
    await engine.dispose()
