from pathlib import Path

import pytest

from product_finder.core.exceptions import (
    BackendUnavailable,
    DescriptionFailed,
    InvalidAudio,
    InvalidImage,
    InvalidQuery,
    TranscriptionFailed,
)
from product_finder.schemas.query import AudioQuery, ImageQuery, TextQuery
from product_finder.services.normalizer import ModalityNormalizer


@pytest.fixture
def normalizer(mock_gateway, mock_speech_service):
    return ModalityNormalizer(
        mock_gateway,
        mock_speech_service,
        max_query_length=500,
        max_image_bytes=1024 * 1024,
        max_audio_bytes=1024 * 1024,
    )


class TestTextQuery:
    @pytest.mark.asyncio
    async def test_trims_and_embeds(self, normalizer, mock_gateway):
        result = await normalizer.normalize(TextQuery(text="  red sneakers  "))

        assert result.query_text == "red sneakers"
        assert result.modality == "text"
        assert result.vector == [0.1] * 4
        mock_gateway.embed_text.assert_awaited_once_with("red sneakers")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "    "])
    async def test_empty_message(self, normalizer, mock_gateway, text):
        with pytest.raises(InvalidQuery, match="Message parameter is required"):
            await normalizer.normalize(TextQuery(text=text))

        mock_gateway.embed_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_length_boundary(self, normalizer, mock_gateway):
        result = await normalizer.normalize(TextQuery(text="a" * 500))
        assert len(result.query_text) == 500

        with pytest.raises(InvalidQuery) as exc_info:
            await normalizer.normalize(TextQuery(text="a" * 501))

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Message must be at most 500 characters"
        assert mock_gateway.embed_text.await_count == 1


class TestImageQuery:
    @pytest.mark.asyncio
    async def test_describes_then_embeds_description(self, normalizer, mock_gateway, png_bytes):
        result = await normalizer.normalize(
            ImageQuery(content=png_bytes, content_type="image/png", filename="shoe.png")
        )

        assert result.query_text == "A red running shoe"
        assert result.modality == "image"
        mock_gateway.describe_image.assert_awaited_once_with(png_bytes)
        mock_gateway.embed_text.assert_awaited_once_with("A red running shoe")
        mock_gateway.embed_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_image(self, normalizer):
        with pytest.raises(InvalidImage, match="No image uploaded"):
            await normalizer.normalize(ImageQuery(content=b""))

    @pytest.mark.asyncio
    async def test_image_too_large(self, mock_gateway, mock_speech_service, png_bytes):
        normalizer = ModalityNormalizer(
            mock_gateway, mock_speech_service, max_image_bytes=len(png_bytes) - 1
        )

        with pytest.raises(InvalidImage, match="Image too large"):
            await normalizer.normalize(ImageQuery(content=png_bytes))

        mock_gateway.describe_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_declared_type_is_not_trusted(self, normalizer, mock_gateway):
        with pytest.raises(InvalidImage, match="Invalid image type"):
            await normalizer.normalize(
                ImageQuery(content=b"<html></html>", content_type="image/png", filename="x.png")
            )

        mock_gateway.describe_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vision_failure(self, normalizer, mock_gateway, png_bytes):
        mock_gateway.describe_image.side_effect = BackendUnavailable("Vision service unavailable")

        with pytest.raises(DescriptionFailed) as exc_info:
            await normalizer.normalize(ImageQuery(content=png_bytes))

        assert exc_info.value.status_code == 500
        mock_gateway.embed_text.assert_not_awaited()


class TestAudioQuery:
    @pytest.mark.asyncio
    async def test_transcribes_then_embeds(self, normalizer, mock_gateway, mock_speech_service):
        seen = {}

        async def transcribe(path):
            seen["path"] = Path(path)
            seen["existed"] = Path(path).is_file()
            return "wireless noise cancelling headphones"

        mock_speech_service.transcribe.side_effect = transcribe

        result = await normalizer.normalize(
            AudioQuery(content=b"ID3fake-mp3", content_type="audio/mpeg", filename="q.mp3")
        )

        assert result.query_text == "wireless noise cancelling headphones"
        assert result.modality == "audio"
        assert seen["existed"] is True
        assert seen["path"].suffix == ".mp3"
        assert not seen["path"].exists()
        mock_gateway.embed_text.assert_awaited_once_with("wireless noise cancelling headphones")

    @pytest.mark.asyncio
    async def test_generic_mime_falls_back_to_extension(self, normalizer, mock_speech_service):
        await normalizer.normalize(
            AudioQuery(content=b"RIFFfake", content_type="application/octet-stream", filename="q.wav")
        )

        path = mock_speech_service.transcribe.await_args.args[0]
        assert Path(path).suffix == ".wav"

    @pytest.mark.asyncio
    async def test_missing_audio(self, normalizer):
        with pytest.raises(InvalidAudio, match="No audio uploaded"):
            await normalizer.normalize(AudioQuery(content=b""))

    @pytest.mark.asyncio
    async def test_invalid_audio_type(self, normalizer, mock_speech_service):
        with pytest.raises(InvalidAudio, match="Invalid audio type"):
            await normalizer.normalize(
                AudioQuery(content=b"hello", content_type="text/plain", filename="notes.txt")
            )

        mock_speech_service.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_audio_too_large(self, mock_gateway, mock_speech_service):
        normalizer = ModalityNormalizer(mock_gateway, mock_speech_service, max_audio_bytes=4)

        with pytest.raises(InvalidAudio, match="Audio too large"):
            await normalizer.normalize(AudioQuery(content=b"12345", content_type="audio/mpeg"))

    @pytest.mark.asyncio
    async def test_temp_file_removed_on_transcription_failure(
        self, normalizer, mock_gateway, mock_speech_service
    ):
        seen = {}

        async def transcribe(path):
            seen["path"] = Path(path)
            raise TranscriptionFailed()

        mock_speech_service.transcribe.side_effect = transcribe

        with pytest.raises(TranscriptionFailed):
            await normalizer.normalize(AudioQuery(content=b"OggS", content_type="audio/ogg"))

        assert not seen["path"].exists()
        mock_gateway.embed_text.assert_not_awaited()
