import asyncio
import logging
from typing import List, Optional

from sqlalchemy import inspect, text

from product_finder.core.config import settings
from product_finder.core.database import Base, SessionLocal, engine as default_engine
from product_finder.models.chunk import ProductChunk
from product_finder.repositories.chunk import ProductChunkRepository
from product_finder.schemas.product import Chunk
from product_finder.schemas.search import SearchResult

logger = logging.getLogger(__name__)


class VectorIndexClient:
    """
    Chunk collection stored in Postgres/pgvector.

    Reads fail soft (empty list), writes report success as a bool; nothing
    here raises into the request path.
    """

    def __init__(self, engine=None, session_factory=None, search_timeout: Optional[float] = None):
        self.engine = engine if engine is not None else default_engine
        self.session_factory = session_factory if session_factory is not None else SessionLocal
        self.table_name = ProductChunk.__tablename__
        self.search_timeout = search_timeout or settings.REQUEST_TIMEOUT

        if not self.table_name.isidentifier():
            raise ValueError(f"Invalid collection name: {self.table_name!r}")

    # --- Collection lifecycle ---
    async def ensure_collection(self, dimension: int) -> bool:
        logger.info(f"Inicializando coleção '{self.table_name}' (dimensão {dimension})")
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                exists = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).has_table(self.table_name)
                )

                if exists:
                    current = await self._current_dimension(conn)
                    if current != dimension:
                        logger.error(
                            f"❌ Coleção '{self.table_name}' tem dimensão {current}, esperado {dimension}. "
                            "Drop and recreate the collection explicitly to change it."
                        )
                        return False
                    logger.info(f"Coleção '{self.table_name}' já existe")
                    return True

                await conn.run_sync(Base.metadata.create_all, tables=[ProductChunk.__table__])
                # Vector() is declared unsized; fix the dimension so the HNSW index can be built
                await conn.execute(
                    text(
                        f"ALTER TABLE {self.table_name} "
                        f"ALTER COLUMN embedding TYPE vector({int(dimension)})"
                    )
                )
                await conn.execute(
                    text(
                        f"CREATE INDEX IF NOT EXISTS ix_{self.table_name}_embedding_hnsw "
                        f"ON {self.table_name} USING hnsw (embedding vector_cosine_ops)"
                    )
                )
            logger.info(f"✨ Coleção '{self.table_name}' criada")
            return True
        except Exception as e:
            logger.error(f"❌ Falha ao inicializar coleção '{self.table_name}': {e}", exc_info=True)
            return False

    async def _current_dimension(self, conn) -> int:
        result = await conn.execute(
            text(
                "SELECT atttypmod FROM pg_attribute "
                "WHERE attrelid = CAST(:table_name AS regclass) AND attname = 'embedding'"
            ),
            {"table_name": self.table_name},
        )
        return result.scalar()

    async def drop_collection(self) -> bool:
        logger.info(f"🗑️ Removendo coleção '{self.table_name}'")
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(ProductChunk.__table__.drop, checkfirst=True)
            return True
        except Exception as e:
            logger.error(f"❌ Falha ao remover coleção '{self.table_name}': {e}", exc_info=True)
            return False

    # --- Writes ---
    async def upsert_chunks(self, product_id: int, chunks: List[Chunk]) -> bool:
        if not product_id:
            logger.warning("⚠️ Chunks ignorados por falta de ID do produto")
            return False

        rows = [
            ProductChunk(
                product_id=product_id,
                product_name=chunk.product_name,
                type=chunk.type.value,
                content=chunk.content,
                embedding=chunk.vector,
            )
            for chunk in chunks
            if chunk.vector
        ]
        if not rows:
            logger.info(f"Produto {product_id}: nenhum chunk com embedding para inserir")
            return True

        try:
            async with self.session_factory() as db:
                await ProductChunkRepository(db).add_all(rows)
        except Exception as e:
            logger.error(f"❌ Erro ao inserir chunks do produto {product_id}: {e}", exc_info=True)
            return False

        logger.info(f"Produto {product_id}: {len(rows)} chunks inseridos")
        return True

    async def delete_by_product_id(self, product_id: int) -> bool:
        try:
            async with self.session_factory() as db:
                deleted = await ProductChunkRepository(db).delete_by_product_id(product_id)
        except Exception as e:
            logger.error(f"❌ Erro ao remover chunks do produto {product_id}: {e}", exc_info=True)
            return False

        logger.info(f"Produto {product_id}: {deleted} chunks removidos")
        return True

    # --- Reads ---
    async def search(self, vector: List[float], limit: int = 3) -> List[SearchResult]:
        if not vector:
            logger.warning("Search vector is empty, returning no results.")
            return []

        try:
            async with self.session_factory() as db:
                results = await asyncio.wait_for(
                    ProductChunkRepository(db).search_by_vector(vector, limit),
                    timeout=self.search_timeout,
                )
        except Exception as e:
            logger.error(f"❌ Busca vetorial falhou: {e!r}", exc_info=True)
            return []

        if not results:
            logger.warning(f"Nenhum resultado na coleção '{self.table_name}'")
        return results

