"""
Database engine and session management.

PromoHub runs on PostgreSQL (asyncpg) in production and on SQLite (aiosqlite)
for development and tests. Redemption correctness leans on the schema's
unique and foreign-key constraints, so SQLite connections switch foreign-key
enforcement on; SQLite leaves it off by default.
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool

from promohub.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for a database URL.

    SQLite gets foreign keys enforced on every connection; an in-memory SQLite
    database is pinned to a single connection so all sessions see the same
    tables. PostgreSQL connections are pinged before use.

    Args:
        url: Database URL; defaults to the configured one
        echo: Log emitted SQL

    Returns:
        AsyncEngine
    """
    url = url or settings.effective_database_url

    if make_url(url).get_backend_name() != "sqlite":
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    in_memory = ":memory:" in url
    engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool if in_memory else NullPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(echo=settings.debug)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    The services commit their own transactions; anything left open when a
    request fails is rolled back here.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Create any missing tables.

    Used by development servers and tests; deployed databases are managed by
    the Alembic migrations.
    """
    # Register every model on Base.metadata before create_all
    import promohub.models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(f"Failed to create tables on {engine.url.render_as_string()}: {e}")
        raise
    logger.info(f"Tables ready on {engine.url.render_as_string()}")


async def close_db() -> None:
    """Dispose of the engine's pooled connections."""
    await engine.dispose()
    logger.info("Database connections closed")
