from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field

from product_finder.api.deps import get_gateway
from product_finder.core.exceptions import InvalidImage, InvalidQuery, UnsupportedMediaType
from product_finder.services.embedding_gateway import EmbeddingGateway, detect_image_mime

router = APIRouter()


class TextEmbeddingRequest(BaseModel):
    texts: List[str] = Field(default_factory=list)


@router.get("/dimension")
async def dimension(gateway: EmbeddingGateway = Depends(get_gateway)):
    return {"dimension": gateway.dimension}


@router.get("/healthstatus")
async def health_status(gateway: EmbeddingGateway = Depends(get_gateway)):
    return gateway.health_status()


@router.post("/text-embedding")
async def text_embedding(
    request: TextEmbeddingRequest,
    gateway: EmbeddingGateway = Depends(get_gateway),
):
    if not request.texts:
        raise InvalidQuery("No texts provided")
    vectors = await gateway.embed_texts(request.texts)
    return {"vectors": vectors}


@router.post("/image-embedding")
async def image_embedding(
    file: Optional[UploadFile] = File(None),
    gateway: EmbeddingGateway = Depends(get_gateway),
):
    if file is None:
        raise InvalidImage("Missing file")

    data = await file.read()
    try:
        detect_image_mime(data)
    except UnsupportedMediaType as e:
        raise InvalidImage("Invalid file type. Only images are allowed.") from e

    description = await gateway.describe_image(data)
    vector = await gateway.embed_text(description)
    return {"description": description, "vector": vector, "provider": gateway.provider}
