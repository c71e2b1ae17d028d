"""Async engine, session factory and the transactional session scope."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from condo_ledger.models import Base

SessionFactory = async_sessionmaker[AsyncSession]


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine.

    Args:
        database_url: SQLAlchemy URL (e.g., "sqlite+aiosqlite:///./condo_ledger.db")
        echo: Log SQL statements

    Returns:
        AsyncEngine
    """
    if database_url.startswith("sqlite:///"):
        database_url = database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Session factory used by every ledger component."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables (development and tests; production uses Alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def transactional_session(session_factory: SessionFactory) -> AsyncIterator[AsyncSession]:
    """Scoped unit of work: commit on success, roll back on any exception.

    The session is closed on every exit path.

    Example:
        ```python
        async with transactional_session(factory) as session:
            session.add(allocation)
        ```
    """
    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


__all__ = [
    "SessionFactory",
    "create_engine_for_url",
    "create_session_factory",
    "init_models",
    "transactional_session",
]
