"""
Base repository class with common data access operations.
"""
from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import ColumnElement, Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import Base

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=Base)


def search_condition(term: str, *columns: Any) -> ColumnElement[bool]:
    """OR of case-insensitive substring matches of ``term`` over ``columns``."""
    pattern = f"%{term}%"
    return or_(*(column.ilike(pattern) for column in columns))


class BaseRepository(Generic[ModelType]):
    """
    Base repository bound to one model class and an injected session.

    Inherit from this class and specify the model type:
        class ServersRepository(BaseRepository[Server]):
            def __init__(self, session: AsyncSession):
                super().__init__(Server, session)
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    def select(self, *where: Any) -> Select:
        stmt = select(self.model)
        if where:
            stmt = stmt.where(*where)
        return stmt

    async def find_one(self, *where: Any, options: Sequence[Any] = ()) -> Optional[ModelType]:
        """Return the single record matching ``where``, or None."""
        stmt = self.select(*where).options(*options)
        result = await self.session.execute(stmt)
        return result.scalars().unique().one_or_none()

    async def find(
        self,
        *where: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Sequence[Any] = (),
    ) -> list[ModelType]:
        """Return records matching ``where``."""
        stmt = self.select(*where).options(*options).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().unique().all())

    async def count(self, *where: Any) -> int:
        """Count records matching ``where``."""
        base = self.select(*where)
        stmt = select(func.count()).select_from(base.subquery())
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def find_and_count(
        self,
        *where: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Sequence[Any] = (),
    ) -> tuple[list[ModelType], int]:
        """Return one page of records plus the total ignoring pagination."""
        items = await self.find(
            *where, order_by=order_by, limit=limit, offset=offset, options=options
        )
        total = await self.count(*where)
        return items, total

    def create(self, **kwargs: Any) -> ModelType:
        """Instantiate a new record. It is not persisted until ``persist``."""
        return self.model(**kwargs)

    def persist(self, entity: ModelType) -> ModelType:
        self.session.add(entity)
        return entity

    async def commit(self) -> None:
        await self.session.commit()

    async def delete(self, entity: ModelType) -> None:
        """Delete a single record and commit."""
        await self.session.delete(entity)
        await self.session.commit()

    async def delete_where(self, *where: Any) -> int:
        """Bulk delete records matching ``where``. Returns affected rows."""
        stmt = delete(self.model).where(*where)
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount
