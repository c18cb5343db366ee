import asyncio
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from safemed.config import settings
from safemed.models import PENDING_PAIR_INDEX, AccessRequest, Base

logger = logging.getLogger("safemed.database")

engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_timeout=30,
    pool_recycle=settings.database_pool_recycle,
    pool_pre_ping=settings.database_pool_pre_ping,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class SchemaNotReadyError(RuntimeError):
    """The database is reachable but its schema has not been migrated."""


def _prepare_schema(conn: Connection) -> None:
    if settings.debug:
        Base.metadata.create_all(conn)
        return

    # Duplicate pending requests are only prevented by the partial unique index.
    table = AccessRequest.__tablename__
    inspector = inspect(conn)
    if not inspector.has_table(table):
        raise SchemaNotReadyError(f"Table {table!r} is missing; run 'alembic upgrade head'.")
    index_names = {ix["name"] for ix in inspector.get_indexes(table)}
    if PENDING_PAIR_INDEX not in index_names:
        raise SchemaNotReadyError(
            f"Index {PENDING_PAIR_INDEX!r} is missing; run 'alembic upgrade head'."
        )


async def init_db() -> None:
    """Create tables in debug, otherwise verify the migrated schema.

    Connection failures are retried with a linear back-off so the API can
    start alongside its database; a missing schema fails immediately.
    """
    total_attempts = settings.database_init_retries + 1
    for attempt in range(1, total_attempts + 1):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(_prepare_schema)
        except SchemaNotReadyError:
            logger.error("Database schema is not ready")
            raise
        except Exception as exc:
            if attempt >= total_attempts:
                logger.exception("Database initialization failed after %d attempts", attempt)
                raise
            delay_seconds = min(settings.database_init_retry_delay_seconds * attempt, 10.0)
            logger.warning(
                "Database initialization attempt %d/%d failed (%s). Retrying in %.1fs.",
                attempt,
                total_attempts,
                exc.__class__.__name__,
                delay_seconds,
            )
            await asyncio.sleep(delay_seconds)
        else:
            if attempt > 1:
                logger.info("Database initialized after %d attempts", attempt)
            return


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: committed when the handler returns, rolled back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
