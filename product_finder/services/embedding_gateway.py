import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Union

from langchain_core.messages import HumanMessage
from langchain_core.output_parsers import StrOutputParser
from PIL import Image, UnidentifiedImageError

from product_finder.core.config import settings
from product_finder.core.exceptions import (
    BackendUnavailable,
    EmptyInput,
    UnsupportedMediaType,
)
from product_finder.services.llm_factory import get_embeddings, get_vision_llm
from product_finder.services.prompts import IMAGE_DESCRIPTION_PROMPT

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, str, Path]

# Formato detectado pelo Pillow -> MIME aceito pelo modelo de visão
ALLOWED_IMAGE_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

HEALTH_PROBE_TEXT = "health check"


def read_image(source: ImageSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    path = Path(source)
    try:
        return path.read_bytes()
    except OSError as e:
        raise UnsupportedMediaType(f"Image file not found or not readable: {path}") from e


def detect_image_mime(data: bytes) -> str:
    """Sniffs the real image format from the bytes, ignoring any declared type."""
    try:
        with Image.open(BytesIO(data)) as img:
            image_format = img.format
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise UnsupportedMediaType("Unsupported image format") from e

    mime_type = ALLOWED_IMAGE_FORMATS.get(image_format or "")
    if mime_type is None:
        raise UnsupportedMediaType(f"Unsupported image format: {image_format}")
    return mime_type


class EmbeddingGateway:
    """
    Uniform access to the embedding and vision backends.

    Build it with ``await EmbeddingGateway.create()``: the health probe runs
    there and also measures the vector dimension of the active model.
    """

    provider = "google"

    def __init__(
        self,
        embeddings,
        vision_llm,
        dimension: int,
        model_name: Optional[str] = None,
        description_prompt: Optional[str] = None,
    ):
        self.embeddings = embeddings
        self.vision_llm = vision_llm
        self.dimension = dimension
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.description_prompt = (
            description_prompt
            or settings.IMAGE_DESCRIPTION_PROMPT
            or IMAGE_DESCRIPTION_PROMPT
        )

    @classmethod
    async def create(cls, embeddings=None, vision_llm=None, **kwargs) -> "EmbeddingGateway":
        embeddings = embeddings if embeddings is not None else get_embeddings()
        vision_llm = vision_llm if vision_llm is not None else get_vision_llm()

        logger.info("🔎 Verificando o backend de embeddings...")
        try:
            vector = await embeddings.aembed_query(HEALTH_PROBE_TEXT)
        except Exception as e:
            logger.critical(f"Backend de embeddings indisponível: {e}", exc_info=True)
            raise BackendUnavailable() from e

        if not vector:
            logger.critical("Health check returned an empty vector")
            raise BackendUnavailable()

        logger.info(f"✅ Backend de embeddings OK (dimensão {len(vector)})")
        return cls(embeddings, vision_llm, dimension=len(vector), **kwargs)

    def health_status(self) -> dict:
        return {
            "status": "It works",
            "provider": self.provider,
            "model": self.model_name,
            "dimension": self.dimension,
        }

    def _check_vector(self, vector: List[float]) -> List[float]:
        if not vector or len(vector) != self.dimension:
            logger.error(
                f"Embedding with unexpected size {len(vector or [])} (expected {self.dimension})"
            )
            raise BackendUnavailable()
        return list(vector)

    async def embed_text(self, text: str) -> List[float]:
        if text is None or not text.strip():
            raise EmptyInput("Text to embed is empty")

        try:
            vector = await self.embeddings.aembed_query(text.strip())
        except Exception as e:
            logger.error(f"❌ Erro ao gerar embedding de texto: {e}", exc_info=True)
            raise BackendUnavailable() from e

        return self._check_vector(vector)

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        if not texts or any(t is None or not t.strip() for t in texts):
            raise EmptyInput("Texts to embed must be non-empty")

        try:
            vectors = await self.embeddings.aembed_documents([t.strip() for t in texts])
        except Exception as e:
            logger.error(f"❌ Erro ao gerar embeddings em lote: {e}", exc_info=True)
            raise BackendUnavailable() from e

        if len(vectors) != len(texts):
            logger.error(f"Backend returned {len(vectors)} vectors for {len(texts)} texts")
            raise BackendUnavailable()
        return [self._check_vector(v) for v in vectors]

    async def describe_image(self, image: ImageSource) -> str:
        data = read_image(image)
        mime_type = detect_image_mime(data)
        encoded = base64.b64encode(data).decode("utf-8")

        message = HumanMessage(
            content=[
                {"type": "text", "text": self.description_prompt},
                {"type": "image_url", "image_url": f"data:{mime_type};base64,{encoded}"},
            ]
        )

        try:
            response = await self.vision_llm.ainvoke([message])
        except Exception as e:
            logger.error(f"❌ Erro ao descrever imagem: {e}", exc_info=True)
            raise BackendUnavailable("Vision service unavailable") from e

        description = StrOutputParser().invoke(response).strip()
        if not description:
            logger.error("Vision model returned an empty description")
            raise BackendUnavailable("Vision service returned an empty description")

        logger.debug(f"Image description: {description[:120]}")
        return description

    async def embed_image(self, image: ImageSource) -> List[float]:
        """Embeds an image in the text space by describing it first."""
        description = await self.describe_image(image)
        return await self.embed_text(description)
