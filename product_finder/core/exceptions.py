"""Error taxonomy shared by the pipeline, the ingestion code and the HTTP layer.

Every component translates its backend's exceptions into one of these before
returning control, so the HTTP boundary only ever renders ``message`` and
``status_code``.
"""


class ProductFinderError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


# --- Input validation (400) ---
class InvalidQuery(ProductFinderError):
    status_code = 400
    default_message = "Invalid query"


class EmptyInput(InvalidQuery):
    default_message = "Input is empty"


class UnsupportedMediaType(ProductFinderError):
    status_code = 400
    default_message = "Unsupported media type"


class InvalidImage(ProductFinderError):
    status_code = 400
    default_message = "Invalid image type"


class InvalidAudio(ProductFinderError):
    status_code = 400
    default_message = "Invalid audio type"


class InvalidProduct(ProductFinderError):
    status_code = 400
    default_message = "Invalid product payload"


class InvalidApiKey(ProductFinderError):
    status_code = 401
    default_message = "Invalid API key"


# --- Backend failures (500) ---
class BackendUnavailable(ProductFinderError):
    default_message = "Embedding service unavailable"


class DescriptionFailed(ProductFinderError):
    default_message = "Image description failed"


class TranscriptionFailed(ProductFinderError):
    default_message = "Transcription failed"


class CompletionFailed(ProductFinderError):
    default_message = "Failed to generate recommendation"


class IndexUnavailable(ProductFinderError):
    default_message = "Vector index unavailable"
