import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

import httpx
from google.api_core.exceptions import ResourceExhausted
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from product_finder.core.config import settings
from product_finder.core.exceptions import (
    BackendUnavailable,
    IndexUnavailable,
    ProductFinderError,
    UnsupportedMediaType,
)
from product_finder.schemas.product import Chunk, ChunkType, ParsedProduct
from product_finder.services.catalog_parser import Record, parse_product_json, parse_record
from product_finder.services.embedding_gateway import EmbeddingGateway
from product_finder.services.vector_index import VectorIndexClient

logger = logging.getLogger(__name__)


class ImageChunkMode(str, Enum):
    DESCRIBE = "describe"
    EMBED = "embed"
    SKIP = "skip"


def _is_rate_limited(exc: BaseException) -> bool:
    """True when the provider's quota error is anywhere in the cause chain."""
    current = exc
    while current is not None:
        if isinstance(current, ResourceExhausted):
            return True
        current = current.__cause__
    return False


# Só na ingestão: o caminho de busca nunca repete chamadas
rate_limit_retry = retry(
    retry=retry_if_exception(_is_rate_limited),
    wait=wait_exponential(multiplier=1, min=2, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)


@dataclass
class ImportReport:
    imported: int = 0
    failed: int = 0
    chunks: int = 0


class ProductIngestionService:
    """Embeds a parsed product's chunks and replaces its vectors in the index."""

    def __init__(
        self,
        gateway: EmbeddingGateway,
        index: VectorIndexClient,
        image_mode: Optional[str] = None,
        concurrency: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.gateway = gateway
        self.index = index
        self.image_mode = ImageChunkMode(image_mode or settings.IMAGE_CHUNK_MODE)
        self.semaphore = asyncio.Semaphore(concurrency or settings.INGESTION_CONCURRENCY)
        self.http_client = http_client

    @rate_limit_retry
    async def _embed_texts_safe(self, texts: List[str]) -> List[List[float]]:
        return await self.gateway.embed_texts(texts)

    @rate_limit_retry
    async def _embed_text_safe(self, text: str) -> List[float]:
        return await self.gateway.embed_text(text)

    @rate_limit_retry
    async def _describe_image_safe(self, data: bytes) -> str:
        return await self.gateway.describe_image(data)

    @rate_limit_retry
    async def _embed_image_safe(self, data: bytes) -> List[float]:
        return await self.gateway.embed_image(data)

    async def _fetch_image(self, url: str) -> Optional[bytes]:
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=settings.REQUEST_TIMEOUT, follow_redirects=True
                ) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Imagem inacessível, ignorada: {url} ({e})")
            return None
        return response.content

    async def _process_image_chunk(self, chunk: Chunk) -> Optional[Chunk]:
        async with self.semaphore:
            data = await self._fetch_image(chunk.content)
            if data is None:
                return None

            try:
                if self.image_mode is ImageChunkMode.EMBED:
                    vector = await self._embed_image_safe(data)
                    return chunk.model_copy(update={"vector": vector})

                description = await self._describe_image_safe(data)
                vector = await self._embed_text_safe(description)
            except (UnsupportedMediaType, BackendUnavailable) as e:
                logger.warning(f"⚠️ Imagem do produto {chunk.product_id} ignorada: {e.message}")
                return None

        return chunk.model_copy(update={"content": description, "vector": vector})

    async def ingest(self, parsed: ParsedProduct) -> int:
        """Returns the number of chunks written for the product."""
        product_id = parsed.product.id
        text_chunks = [c for c in parsed.chunks if c.type is not ChunkType.IMAGE]
        image_chunks = [c for c in parsed.chunks if c.type is ChunkType.IMAGE]

        embedded: List[Chunk] = []
        if text_chunks:
            vectors = await self._embed_texts_safe([c.content for c in text_chunks])
            embedded = [
                chunk.model_copy(update={"vector": vector})
                for chunk, vector in zip(text_chunks, vectors)
            ]

        if image_chunks and self.image_mode is not ImageChunkMode.SKIP:
            results = await asyncio.gather(
                *(self._process_image_chunk(chunk) for chunk in image_chunks)
            )
            embedded.extend(chunk for chunk in results if chunk is not None)

        # Reindexação substitui tudo: a remoção termina antes da inserção
        if not await self.index.delete_by_product_id(product_id):
            raise IndexUnavailable(f"Failed to remove previous vectors of product {product_id}")
        if not await self.index.upsert_chunks(product_id, embedded):
            raise IndexUnavailable(f"Failed to store vectors of product {product_id}")

        logger.info(f"✨ Produto {product_id} indexado com {len(embedded)} chunks")
        return len(embedded)

    async def ingest_payload(self, data: dict) -> int:
        return await self.ingest(parse_product_json(data))

    async def delete(self, product_id: int) -> None:
        if not await self.index.delete_by_product_id(product_id):
            raise IndexUnavailable(f"Failed to delete vectors of product {product_id}")

    async def ingest_many(self, records: Iterable[Record]) -> ImportReport:
        report = ImportReport()
        for position, record in enumerate(records, start=1):
            try:
                written = await self.ingest(parse_record(record))
            except ProductFinderError as e:
                report.failed += 1
                logger.error(f"❌ Produto #{position} não importado: {e.message}")
                continue
            except Exception as e:
                report.failed += 1
                logger.error(f"❌ Erro inesperado no produto #{position}: {e}", exc_info=True)
                continue

            report.imported += 1
            report.chunks += written

        logger.info(
            f"Importação concluída: {report.imported} produtos, "
            f"{report.failed} falhas, {report.chunks} chunks"
        )
        return report
