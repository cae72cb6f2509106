"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction for SQLAlchemy 2.0 async data
access. Repositories encapsulate query construction and give services a
consistent interface for CRUD operations.

Design Notes
------------
This base repository provides:
- Type-safe reads with optional ordering and paging
- Pessimistic locking support (``for_update``)
- Aggregate helpers (count, sum)
- Structured debug logging for every operation

What this class does NOT do:
- Manage transactions (services/DatabaseService handle that)
- Contain business logic

Usage
-----
    class StatRepository(BaseRepository[CharacterStat]):
        async def find_owned(self, session, stat_id, user_id):
            return await self.find_one_where(
                session,
                CharacterStat.id == stat_id,
                CharacterStat.user_id == user_id,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE and overwrite any
                stale identity-map state with the locked row

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        instance = (await session.execute(stmt)).scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            limit: Optional maximum number of results
            offset: Optional number of rows to skip

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        instances = list((await session.execute(stmt)).scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found_count": len(instances),
                "limit": limit,
                "offset": offset,
            },
        )

        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        count = (await session.execute(stmt)).scalar_one()

        self.log.debug(
            f"Repository.count: {self._model_name}",
            extra={"model": self._model_name, "count": count},
        )

        return count

    async def sum_column(
        self,
        session: AsyncSession,
        column: Any,
        *conditions: ColumnElement[bool],
    ) -> int:
        """``COALESCE(SUM(column), 0)`` over matching rows."""
        stmt = select(func.coalesce(func.sum(column), 0)).where(*conditions)
        total = int((await session.execute(stmt)).scalar_one())

        self.log.debug(
            f"Repository.sum_column: {self._model_name}",
            extra={"model": self._model_name, "column": str(column), "total": total},
        )

        return total

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)

        self.log.debug(f"Repository.add: {self._model_name}", extra={"model": self._model_name})

        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)

        self.log.debug(
            f"Repository.delete: {self._model_name}", extra={"model": self._model_name}
        )

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Bulk DELETE of matching rows; returns the number of rows removed."""
        result = await session.execute(
            delete(self.model_class).where(*conditions).execution_options(synchronize_session=False)
        )

        self.log.debug(
            f"Repository.delete_where: {self._model_name}",
            extra={"model": self._model_name, "deleted": result.rowcount},
        )

        return result.rowcount

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()

        self.log.debug(f"Repository.flush: {self._model_name}", extra={"model": self._model_name})
