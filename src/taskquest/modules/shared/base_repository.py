"""
Base Repository Pattern

Purpose
-------
Type-safe data access for one ORM model, following SQLAlchemy 2.0 async
conventions. Repositories never open or commit transactions: the caller
passes the session it got from ``DatabaseService``.

Usage
-----
    class TaskRepository(BaseRepository[TaskModel]):
        pass

    async with DatabaseService.get_transaction() as session:
        await repo.upsert(session, row)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Type, TypeVar

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

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key."""
        instance = await session.get(self.model_class, id_value)

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Any] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional column or expression to sort by
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "limit": limit,
            },
        )
        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def upsert(self, session: AsyncSession, instance: T) -> T:
        """
        Insert or update by primary key.

        Returns the persistent instance attached to ``session``.
        """
        merged = await session.merge(instance)

        self.log.debug(
            f"Repository.upsert: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return merged

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
        return instance

    async def delete_by_id(self, session: AsyncSession, id_value: Any) -> bool:
        """Delete one row by primary key. Returns False if it was absent."""
        instance = await session.get(self.model_class, id_value)
        if instance is None:
            return False
        await session.delete(instance)

        self.log.debug(
            f"Repository.delete_by_id: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "id": id_value},
        )
        return True

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Bulk delete. With no conditions, empties the table."""
        stmt = delete(self.model_class).where(*conditions)  # type: ignore[arg-type]
        result = await session.execute(stmt)
        deleted = result.rowcount or 0

        self.log.debug(
            f"Repository.delete_where: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "deleted": deleted},
        )
        return deleted

    async def flush(self, session: AsyncSession) -> None:
        await session.flush()
