from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Product Finder"
    LOG_LEVEL: str = "INFO"

    # Database
    DB_HOST: str | None = None
    DB_PORT: str | None = None
    DB_NAME: str | None = None
    DB_USERNAME: str | None = None
    DB_PASSWORD: str | None = None
    DATABASE_URL: str | None = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 1800
    DB_ECHO: bool = False

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL

        if (
            self.DB_HOST
            and self.DB_PORT
            and self.DB_NAME
            and self.DB_USERNAME
            and self.DB_PASSWORD
        ):
            return f"postgresql+asyncpg://{self.DB_USERNAME}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

        raise ValueError(
            "Database configuration is incomplete. define DATABASE_URL or (DB_HOST, DB_PORT, DB_NAME, DB_USERNAME, DB_PASSWORD)."
        )

    # AI Providers
    GROQ_API_KEY: str
    GOOGLE_API_KEY: str

    # Models
    CHAT_MODEL: str = "llama-3.3-70b-versatile"
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    VISION_MODEL: str = "gemini-2.0-flash"
    STT_MODEL: str = "whisper-large-v3"
    LLM_TEMPERATURE: float = 0.0
    IMAGE_DESCRIPTION_PROMPT: str | None = None

    # API access; an empty key rejects every protected request
    APP_API_KEY: str = ""

    # Search pipeline
    VECTOR_COLLECTION: str = "product_chunks"
    SEARCH_TOP_K: int = 3
    RELEVANCE_THRESHOLD: float = 0.5
    MAX_QUERY_LENGTH: int = 500
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    MAX_AUDIO_BYTES: int = 25 * 1024 * 1024
    REQUEST_TIMEOUT: float = 30.0

    # Ingestion: "describe", "embed" or "skip" for image chunks
    IMAGE_CHUNK_MODE: str = "describe"
    INGESTION_CONCURRENCY: int = 4

    # Message queue (consumer disabled when unset)
    RABBITMQ_URL: str | None = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
