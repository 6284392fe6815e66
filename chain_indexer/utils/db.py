"""
Database unit-of-work helpers.

Opens a session with one transaction: commit on success, rollback on
any error. SQLAlchemy failures and refused database connections surface
as StorageError so the engine can tell storage failures from chain
client failures.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chain_indexer.utils.exceptions import StorageError


@asynccontextmanager
async def storage_unit(
    session_maker: async_sessionmaker[AsyncSession],
    label: str = "storage unit",
) -> AsyncIterator[AsyncSession]:
    """
    Run a block of database work atomically.

    Usage:
        async with storage_unit(session_maker, "BTC block 100") as session:
            repo = BtcRepository(session)
            await repo.save_block(...)
            # Commit happens on exit

    Args:
        session_maker: Session factory
        label: Description used in log messages

    Yields:
        Session inside an open transaction

    Raises:
        StorageError: Any SQLAlchemy failure, after rollback, or a
            connection the driver refused without wrapping it
    """
    try:
        async with session_maker() as session, session.begin():
            yield session
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Rollback performed in {label} due to error: {type(e).__name__}")
        raise StorageError(f"{label} failed: {e}") from e
