from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from product_finder.core.config import Settings, settings


def build_engine(config: Settings) -> AsyncEngine:
    return create_async_engine(
        config.SQLALCHEMY_DATABASE_URI,
        echo=config.DB_ECHO,
        pool_pre_ping=True,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_recycle=config.DB_POOL_RECYCLE,
        connect_args={"command_timeout": config.REQUEST_TIMEOUT},
    )


engine = build_engine(settings)

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()
