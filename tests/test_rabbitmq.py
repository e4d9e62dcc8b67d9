import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from product_finder.core.exceptions import InvalidProduct
from product_finder.core.rabbitmq import process_message
from product_finder.services.ingestion_service import ProductIngestionService


def make_message(body, routing_key="product.created"):
    message = MagicMock()
    message.body = body if isinstance(body, bytes) else json.dumps(body).encode()
    message.routing_key = routing_key
    message.nack = AsyncMock()
    return message


@pytest.fixture
def ingestion_service():
    return AsyncMock(spec=ProductIngestionService)


class TestProcessMessage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("routing_key", ["product.created", "product.updated"])
    async def test_upsert_events(self, ingestion_service, routing_key):
        message = make_message({"id": 5, "name": "Cup"}, routing_key)

        await process_message(message, ingestion_service=ingestion_service)

        ingestion_service.ingest_payload.assert_awaited_once_with({"id": 5, "name": "Cup"})
        message.nack.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_event(self, ingestion_service):
        message = make_message({"id": "5"}, "product.deleted")

        await process_message(message, ingestion_service=ingestion_service)

        ingestion_service.delete.assert_awaited_once_with(5)
        ingestion_service.ingest_payload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_json_is_dead_lettered(self, ingestion_service):
        message = make_message(b"{not json")

        await process_message(message, ingestion_service=ingestion_service)

        message.nack.assert_awaited_once_with(requeue=False)
        ingestion_service.ingest_payload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_processing_error_is_dead_lettered(self, ingestion_service):
        ingestion_service.ingest_payload.side_effect = InvalidProduct("Product validation failed")
        message = make_message({"name": "No id"})

        await process_message(message, ingestion_service=ingestion_service)

        message.nack.assert_awaited_once_with(requeue=False)
