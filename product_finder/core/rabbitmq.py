import json
import logging
from functools import partial

import aio_pika
from aio_pika.abc import AbstractIncomingMessage

from product_finder.core.config import settings
from product_finder.services.ingestion_service import ProductIngestionService

logger = logging.getLogger(__name__)

# --- Nomes da infraestrutura ---
# Main (onde o catálogo publica)
MAIN_EXCHANGE_NAME = "products.topic"
MAIN_QUEUE_NAME = "ai.product.sync.queue"
UPSERT_ROUTING_KEYS = ["product.created", "product.updated"]
DELETE_ROUTING_KEY = "product.deleted"

# Dead Letter
DLX_EXCHANGE_NAME = "products.dlx"
DLQ_QUEUE_NAME = "ai.product.sync.dlq"
DLQ_ROUTING_KEY = "dead.letter"


async def process_message(
    message: AbstractIncomingMessage, ingestion_service: ProductIngestionService
):
    async with message.process(ignore_processed=True):
        try:
            try:
                data = json.loads(message.body.decode())
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.error("JSON inválido. Enviando para DLQ.")
                await message.nack(requeue=False)
                return

            if not isinstance(data, dict):
                logger.error("Mensagem não é um objeto JSON. Enviando para DLQ.")
                await message.nack(requeue=False)
                return

            logger.info(f"Recebido: {data.get('id', '?')} | Evento: {message.routing_key}")

            if message.routing_key == DELETE_ROUTING_KEY:
                await ingestion_service.delete(int(data["id"]))
            else:
                await ingestion_service.ingest_payload(data)

            logger.info(f"✅ Sucesso: {data.get('id')}")

        except Exception as e:
            logger.error(f"❌ Erro processando msg: {e}", exc_info=True)
            # requeue=False manda para a DLQ configurada na fila principal
            await message.nack(requeue=False)


async def start_rabbitmq_consumer(ingestion_service: ProductIngestionService):
    try:
        connection = await aio_pika.connect_robust(settings.RABBITMQ_URL)
        channel = await connection.channel()
        await channel.set_qos(prefetch_count=10)

        dlx = await channel.declare_exchange(
            DLX_EXCHANGE_NAME, aio_pika.ExchangeType.DIRECT, durable=True
        )
        dlq = await channel.declare_queue(DLQ_QUEUE_NAME, durable=True)
        await dlq.bind(dlx, routing_key=DLQ_ROUTING_KEY)

        main_exchange = await channel.declare_exchange(
            MAIN_EXCHANGE_NAME, aio_pika.ExchangeType.TOPIC, durable=True
        )
        main_queue = await channel.declare_queue(
            MAIN_QUEUE_NAME,
            durable=True,
            arguments={
                "x-dead-letter-exchange": DLX_EXCHANGE_NAME,
                "x-dead-letter-routing-key": DLQ_ROUTING_KEY,
            },
        )

        for key in UPSERT_ROUTING_KEYS + [DELETE_ROUTING_KEY]:
            await main_queue.bind(main_exchange, routing_key=key)

        logger.info(f"Consumer ouvindo '{MAIN_QUEUE_NAME}' no exchange '{MAIN_EXCHANGE_NAME}'")

        await main_queue.consume(partial(process_message, ingestion_service=ingestion_service))
        return connection

    except Exception as e:
        logger.critical(f"Erro fatal RabbitMQ: {e}")
        raise
