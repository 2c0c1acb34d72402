"""AsyncEngine + session factory for the dashboard's PostgreSQL database."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from bot_executor.config import Settings


def _pooler_connect_args() -> dict:
    # Transaction-mode poolers hand each statement to a different backend,
    # so asyncpg must not cache or reuse named prepared statements.
    return {
        "statement_cache_size": 0,
        "prepared_statement_cache_size": 0,
        "prepared_statement_name_func": lambda: f"__asyncpg_{uuid4()}__",
    }


def create_db_engine(settings: Settings) -> AsyncEngine:
    """Create async SQLAlchemy engine with asyncpg."""
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args=_pooler_connect_args() if settings.DB_PGBOUNCER else {},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)
