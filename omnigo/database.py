"""
Database engine and sessions.

Postgres via asyncpg in deployment; any SQLAlchemy async URL works (tests use
sqlite+aiosqlite). Without DATABASE_URL the API still starts, but every
request that needs a session fails.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from omnigo.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all OmniGo tables."""
    pass


def normalize_database_url(url: str) -> str:
    """
    Map a plain Postgres URL onto the asyncpg driver and strip `sslmode`,
    which asyncpg rejects as a query parameter (SSL is set via connect_args).
    """
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]

    base, _, query = url.partition("?")
    params = [p for p in query.split("&") if p and not p.startswith("sslmode=")]
    return f"{base}?{'&'.join(params)}" if params else base


def build_engine(url: str) -> Optional[AsyncEngine]:
    if not url:
        logger.warning("DATABASE_URL not configured. Orders and payments are unavailable.")
        return None

    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        connect_args={"ssl": settings.is_production},
    )


engine = build_engine(settings.database_url)

async_session_maker: Optional[async_sessionmaker[AsyncSession]] = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine
    else None
)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for workers and scripts.
    Commits on success, rolls back and re-raises on error.
    """
    if async_session_maker is None:
        raise RuntimeError("Database not configured. Set DATABASE_URL environment variable.")

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency; same commit/rollback rules as get_db_context."""
    async with get_db_context() as session:
        yield session


async def init_db() -> None:
    """Create missing tables."""
    if engine is None:
        logger.info("Skipping table creation - DATABASE_URL not configured")
        return

    import omnigo.models  # noqa: F401  (registers tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def close_db() -> None:
    if engine is not None:
        await engine.dispose()
