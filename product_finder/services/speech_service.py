import logging
from pathlib import Path
from typing import Optional

from product_finder.core.config import settings
from product_finder.core.exceptions import TranscriptionFailed
from product_finder.services.llm_factory import get_transcription_client

logger = logging.getLogger(__name__)


class SpeechToTextService:
    """Transcrição de áudio via Groq Whisper."""

    def __init__(self, client=None, model: Optional[str] = None):
        self.client = client if client is not None else get_transcription_client()
        self.model = model or settings.STT_MODEL

    async def transcribe(self, audio_path: Path) -> str:
        path = Path(audio_path)
        if not path.is_file():
            logger.error(f"Audio file not found for transcription: {path}")
            raise TranscriptionFailed()

        logger.info(f"🎙️ Enviando áudio para transcrição (modelo {self.model})")
        try:
            response = await self.client.audio.transcriptions.create(
                file=path,
                model=self.model,
                response_format="json",
            )
        except Exception as e:
            logger.error(f"❌ Erro na transcrição: {e}", exc_info=True)
            raise TranscriptionFailed() from e

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            logger.error("Transcription returned an empty text")
            raise TranscriptionFailed()

        logger.info(f"Transcrição OK: {text[:80]!r}")
        return text
