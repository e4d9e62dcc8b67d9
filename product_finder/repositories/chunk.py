from typing import List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from product_finder.models.chunk import ProductChunk
from product_finder.repositories.base import BaseRepository
from product_finder.schemas.search import SearchResult


class ProductChunkRepository(BaseRepository[ProductChunk]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, ProductChunk)

    async def delete_by_product_id(self, product_id: int) -> int:
        """
        Removes every chunk of a product. Returns the number of deleted rows.
        """
        result = await self.db.execute(
            delete(self.model).where(self.model.product_id == product_id)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def search_by_vector(
        self, query_vector: List[float], limit: int
    ) -> List[SearchResult]:
        """
        Searches for chunks using cosine distance (pgvector ``<=>``), closest first.
        """
        distance = self.model.embedding.cosine_distance(query_vector).label("distance")
        stmt = (
            select(
                self.model.product_id,
                self.model.product_name,
                self.model.type,
                self.model.content,
                distance,
            )
            .order_by(distance)
            .limit(limit)
        )

        rows = (await self.db.execute(stmt)).all()
        return [
            SearchResult(
                product_id=row.product_id,
                title=row.product_name,
                type=row.type,
                content=row.content,
                distance=float(row.distance),
            )
            for row in rows
        ]
