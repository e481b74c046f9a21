"""
Base Repository - common CRUD operations
"""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from headless_oauth.core.database import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """
    Base repository with common CRUD operations.

    Usage:
        class CustomerRepository(BaseRepository[Customer]):
            def __init__(self, db: AsyncSession):
                super().__init__(Customer, db)
    """

    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def get(self, id: Any) -> Optional[T]:
        """Get a record by primary key"""
        return await self.db.get(self.model, id)

    async def get_by(self, **kwargs: Any) -> Optional[T]:
        """Get a single record matching every condition"""
        query = select(self.model)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find(self, order_by: Optional[str] = None, **kwargs: Any) -> List[T]:
        """Query records matching every condition"""
        query = select(self.model)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        if order_by is not None:
            query = query.order_by(getattr(self.model, order_by))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, **kwargs: Any) -> T:
        """Add a record and flush so database constraints fire immediately"""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        return instance

    async def delete(self, instance: T) -> None:
        await self.db.delete(instance)
        await self.db.flush()
