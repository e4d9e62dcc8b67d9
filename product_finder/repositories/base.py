from typing import Generic, TypeVar, Type, List
from sqlalchemy.ext.asyncio import AsyncSession
from product_finder.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    def __init__(self, db: AsyncSession, model: Type[ModelType]):
        self.db = db
        self.model = model

    async def add_all(self, objs_in: List[ModelType]) -> List[ModelType]:
        self.db.add_all(objs_in)
        await self.db.commit()
        return objs_in
