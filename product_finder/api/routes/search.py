from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse

from product_finder.api.deps import get_recommendation_service
from product_finder.schemas.query import AudioQuery, ImageQuery, TextQuery
from product_finder.schemas.search import ChatRequest
from product_finder.services.recommendation_service import (
    RecommendationOutcome,
    RecommendationService,
)

router = APIRouter()


def _render(outcome: RecommendationOutcome) -> JSONResponse:
    return JSONResponse(status_code=outcome.status_code, content=outcome.body.model_dump())


@router.post("/text")
async def search_text(
    request: ChatRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    # Histórico só participa quando o cliente pede explicitamente
    history = request.history if request.use_history else None
    outcome = await service.recommend(TextQuery(text=request.message), history=history)
    return _render(outcome)


@router.post("/image")
async def search_image(
    image: Optional[UploadFile] = File(None),
    service: RecommendationService = Depends(get_recommendation_service),
):
    content = await image.read() if image is not None else b""
    query = ImageQuery(
        content=content,
        content_type=image.content_type if image is not None else None,
        filename=image.filename if image is not None else None,
    )
    return _render(await service.recommend(query))


@router.post("/audio")
async def search_audio(
    audio: Optional[UploadFile] = File(None),
    service: RecommendationService = Depends(get_recommendation_service),
):
    content = await audio.read() if audio is not None else b""
    query = AudioQuery(
        content=content,
        content_type=audio.content_type if audio is not None else None,
        filename=audio.filename if audio is not None else None,
    )
    return _render(await service.recommend(query))
