import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from product_finder.api.deps import require_api_key
from product_finder.api.routes import embeddings, products, search
from product_finder.core.config import settings
from product_finder.core.database import engine
from product_finder.core.exceptions import ProductFinderError
from product_finder.core.logging import setup_logging
from product_finder.core.rabbitmq import start_rabbitmq_consumer
from product_finder.services.embedding_gateway import EmbeddingGateway
from product_finder.services.ingestion_service import ProductIngestionService
from product_finder.services.normalizer import ModalityNormalizer
from product_finder.services.recommendation_service import RecommendationService
from product_finder.services.speech_service import SpeechToTextService
from product_finder.services.vector_index import VectorIndexClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    setup_logging(settings.LOG_LEVEL)
    logger.info(f"🚀 Iniciando {settings.PROJECT_NAME}...")

    # Falha aqui derruba o startup: sem embeddings não há busca
    gateway = await EmbeddingGateway.create()

    index = VectorIndexClient()
    if not await index.ensure_collection(gateway.dimension):
        logger.error("Coleção vetorial indisponível; buscas retornarão zero resultados.")

    normalizer = ModalityNormalizer(gateway, SpeechToTextService())
    ingestion_service = ProductIngestionService(gateway, index)

    app.state.gateway = gateway
    app.state.index = index
    app.state.recommendation_service = RecommendationService(normalizer, index)
    app.state.ingestion_service = ingestion_service

    app.state.rabbitmq_connection = None
    if settings.RABBITMQ_URL:
        app.state.rabbitmq_connection = await start_rabbitmq_consumer(ingestion_service)

    yield

    # --- Shutdown ---
    logger.info("🛑 Desligando serviços...")
    if app.state.rabbitmq_connection is not None:
        try:
            await app.state.rabbitmq_connection.close()
            logger.info("🐰 Conexão RabbitMQ fechada.")
        except Exception as e:
            logger.error(f"Erro ao fechar RabbitMQ: {e}")
    await engine.dispose()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProductFinderError)
async def product_finder_error_handler(request: Request, exc: ProductFinderError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"❌ Erro não tratado em {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


# Rotas
protected = [Depends(require_api_key)]
app.include_router(search.router, prefix="/api/search", tags=["search"], dependencies=protected)
app.include_router(products.router, prefix="/api/products", tags=["products"], dependencies=protected)
app.include_router(embeddings.router, tags=["embeddings"], dependencies=protected)


@app.get("/")
def index():
    return {"service": settings.PROJECT_NAME, "status": "ok"}


@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": settings.PROJECT_NAME}
