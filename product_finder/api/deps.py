import secrets
from typing import Optional

from fastapi import Request, Security
from fastapi.security import APIKeyCookie, APIKeyHeader

from product_finder.core.config import settings
from product_finder.core.exceptions import InvalidApiKey
from product_finder.services.embedding_gateway import EmbeddingGateway
from product_finder.services.ingestion_service import ProductIngestionService
from product_finder.services.recommendation_service import RecommendationService
from product_finder.services.vector_index import VectorIndexClient

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
api_key_cookie = APIKeyCookie(name="api_key", auto_error=False)


def require_api_key(
    header_key: Optional[str] = Security(api_key_header),
    cookie_key: Optional[str] = Security(api_key_cookie),
) -> str:
    """
    Aceita a chave pelo header ``X-API-Key`` ou pelo cookie ``api_key``.
    Com ``APP_API_KEY`` vazio nenhuma requisição protegida passa.
    """
    provided = header_key or cookie_key
    expected = settings.APP_API_KEY
    if not expected or not provided or not secrets.compare_digest(provided, expected):
        raise InvalidApiKey()
    return provided


# Serviços montados no lifespan e guardados em app.state
def get_gateway(request: Request) -> EmbeddingGateway:
    return request.app.state.gateway


def get_index(request: Request) -> VectorIndexClient:
    return request.app.state.index


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


def get_ingestion_service(request: Request) -> ProductIngestionService:
    return request.app.state.ingestion_service
