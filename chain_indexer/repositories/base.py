"""
Base repository.

Generic operations shared by all repositories, including the
dialect-aware idempotent insert and upsert used by the entity store.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chain_indexer.models.base import Base

# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)

# Dialects providing INSERT ... ON CONFLICT
_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class BaseRepository(Generic[ModelType]):
    """
    Base repository with generic operations.

    Provides async database operations for any SQLAlchemy model.
    Repositories never commit: the caller owns the transaction.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class BtcRepository(BaseRepository[BtcBlock]):
            def __init__(self, session: AsyncSession):
                super().__init__(BtcBlock, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    def _conflict_insert(self, model: type[Base]):
        """Dialect-specific INSERT supporting ON CONFLICT clauses."""
        dialect = self.session.get_bind().dialect.name
        try:
            insert = _CONFLICT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(
                f"Idempotent inserts are not supported on {dialect}"
            ) from None
        return insert(model)

    async def get_by(
        self, **filters: Any
    ) -> ModelType | None:
        """
        Get single entity by filters.

        Args:
            **filters: Column filters

        Returns:
            First matching entity or None
        """
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, **filters: Any) -> int:
        """
        Count entities matching filters.

        Args:
            **filters: Column filters

        Returns:
            Count of matching entities
        """
        stmt = select(func.count()).select_from(self.model)

        if filters:
            stmt = stmt.filter_by(**filters)

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, **filters: Any) -> bool:
        """
        Check if entity exists.

        Args:
            **filters: Column filters

        Returns:
            True if exists, False otherwise
        """
        count = await self.count(**filters)
        return count > 0

    async def insert_if_absent(
        self,
        model: type[Base],
        conflict_columns: list[str],
        **data: Any,
    ) -> bool:
        """
        Insert row unless its natural key already exists.

        Args:
            model: Target model
            conflict_columns: Natural key columns (unique constraint)
            **data: Row values

        Returns:
            True if a row was inserted, False if it already existed
        """
        stmt = (
            self._conflict_insert(model)
            .values(**data)
            .on_conflict_do_nothing(index_elements=conflict_columns)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def upsert(
        self,
        model: type[Base],
        conflict_columns: list[str],
        update_columns: list[str],
        **data: Any,
    ) -> None:
        """
        Insert row or overwrite ``update_columns`` of the existing one.

        Args:
            model: Target model
            conflict_columns: Natural key columns (unique constraint)
            update_columns: Columns refreshed on conflict
            **data: Row values
        """
        stmt = self._conflict_insert(model).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_={column: stmt.excluded[column] for column in update_columns},
        )
        await self.session.execute(stmt)
