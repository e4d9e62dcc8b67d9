import json
import logging

from fastapi import APIRouter, Depends, Request

from product_finder.api.deps import get_gateway, get_index, get_ingestion_service
from product_finder.core.exceptions import IndexUnavailable, InvalidProduct
from product_finder.services.catalog_parser import parse_product_json
from product_finder.services.embedding_gateway import EmbeddingGateway
from product_finder.services.ingestion_service import ProductIngestionService
from product_finder.services.vector_index import VectorIndexClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def upsert_product(
    request: Request,
    gateway: EmbeddingGateway = Depends(get_gateway),
    index: VectorIndexClient = Depends(get_index),
    ingestion_service: ProductIngestionService = Depends(get_ingestion_service),
):
    """Indexa (ou reindexa) um produto enviado como JSON."""
    try:
        payload = json.loads(await request.body())
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise InvalidProduct("Invalid JSON payload")

    parsed = parse_product_json(payload)

    if not await index.ensure_collection(gateway.dimension):
        raise IndexUnavailable()

    chunks = await ingestion_service.ingest(parsed)
    return {"success": True, "chunks": chunks}


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    ingestion_service: ProductIngestionService = Depends(get_ingestion_service),
):
    if product_id <= 0:
        raise InvalidProduct("ID is empty or negative")

    await ingestion_service.delete(product_id)
    logger.info(f"🗑️ Produto {product_id} removido do índice")
    return {"success": True}
