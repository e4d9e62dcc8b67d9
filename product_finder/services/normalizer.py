import logging
import tempfile
from pathlib import Path
from typing import Optional

from product_finder.core.config import settings
from product_finder.core.exceptions import (
    BackendUnavailable,
    DescriptionFailed,
    InvalidAudio,
    InvalidImage,
    InvalidQuery,
    UnsupportedMediaType,
)
from product_finder.schemas.query import (
    AudioQuery,
    ImageQuery,
    NormalizedQuery,
    SearchQuery,
    TextQuery,
)
from product_finder.services.embedding_gateway import EmbeddingGateway, detect_image_mime
from product_finder.services.speech_service import SpeechToTextService

logger = logging.getLogger(__name__)

# MIME -> extensão; o Whisper identifica o formato pela extensão do arquivo
AUDIO_MIME_TYPES = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/webm": ".webm",
    "video/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/flac": ".flac",
    "audio/x-flac": ".flac",
}
AUDIO_SUFFIXES = set(AUDIO_MIME_TYPES.values()) | {".mpeg", ".mpga", ".mp4"}
GENERIC_MIME_TYPES = {"", "application/octet-stream"}


class ModalityNormalizer:
    """
    Turns any supported input into ``(query_text, vector)``.

    Validation happens before any backend call; every failure raises a
    ``ProductFinderError`` subclass.
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        speech_service: SpeechToTextService,
        max_query_length: Optional[int] = None,
        max_image_bytes: Optional[int] = None,
        max_audio_bytes: Optional[int] = None,
    ):
        self.gateway = gateway
        self.speech_service = speech_service
        self.max_query_length = max_query_length or settings.MAX_QUERY_LENGTH
        self.max_image_bytes = max_image_bytes or settings.MAX_IMAGE_BYTES
        self.max_audio_bytes = max_audio_bytes or settings.MAX_AUDIO_BYTES

    async def normalize(self, query: SearchQuery) -> NormalizedQuery:
        match query:
            case TextQuery(text=text):
                return await self._from_text(text)
            case ImageQuery():
                return await self._from_image(query)
            case AudioQuery():
                return await self._from_audio(query)
            case _:
                raise InvalidQuery(f"Unsupported query type: {type(query).__name__}")

    def validate_text(self, text: Optional[str]) -> str:
        query_text = (text or "").strip()
        if not query_text:
            raise InvalidQuery("Message parameter is required")
        if len(query_text) > self.max_query_length:
            raise InvalidQuery(f"Message must be at most {self.max_query_length} characters")
        return query_text

    async def _from_text(self, text: str) -> NormalizedQuery:
        query_text = self.validate_text(text)
        vector = await self.gateway.embed_text(query_text)
        return NormalizedQuery(query_text=query_text, vector=vector, modality="text")

    async def _from_image(self, query: ImageQuery) -> NormalizedQuery:
        if not query.content:
            raise InvalidImage("No image uploaded")
        if len(query.content) > self.max_image_bytes:
            raise InvalidImage("Image too large")
        try:
            detect_image_mime(query.content)
        except UnsupportedMediaType as e:
            logger.info(f"Rejected upload {query.filename!r} ({query.content_type}): {e.message}")
            raise InvalidImage("Invalid image type") from e

        try:
            description = await self.gateway.describe_image(query.content)
        except BackendUnavailable as e:
            raise DescriptionFailed() from e

        logger.info(f"🖼️ Imagem descrita como: {description[:80]!r}")
        # Busca no mesmo espaço de embeddings de texto usado na indexação
        vector = await self.gateway.embed_text(description)
        return NormalizedQuery(query_text=description, vector=vector, modality="image")

    def _audio_suffix(self, query: AudioQuery) -> str:
        content_type = (query.content_type or "").split(";")[0].strip().lower()
        if content_type in AUDIO_MIME_TYPES:
            return AUDIO_MIME_TYPES[content_type]

        suffix = Path(query.filename or "").suffix.lower()
        if content_type in GENERIC_MIME_TYPES and suffix in AUDIO_SUFFIXES:
            return suffix

        raise InvalidAudio("Invalid audio type")

    async def _from_audio(self, query: AudioQuery) -> NormalizedQuery:
        if not query.content:
            raise InvalidAudio("No audio uploaded")
        if len(query.content) > self.max_audio_bytes:
            raise InvalidAudio("Audio too large")
        suffix = self._audio_suffix(query)

        # O diretório temporário é removido em qualquer saída, inclusive erro
        with tempfile.TemporaryDirectory(prefix="product-finder-audio-") as tmp_dir:
            audio_path = Path(tmp_dir) / f"query{suffix}"
            audio_path.write_bytes(query.content)
            text = await self.speech_service.transcribe(audio_path)

        vector = await self.gateway.embed_text(text)
        return NormalizedQuery(query_text=text, vector=vector, modality="audio")
