# marketsync/database.py
"""Async engine and session factory shared by the API, the CLI and the scheduler."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from marketsync.core.config import Settings, get_settings


def async_database_url(url: str) -> str:
    """Hosting providers hand out postgres:// URLs; the engine needs the asyncpg driver"""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def build_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    settings = settings or get_settings()
    return create_async_engine(
        async_database_url(settings.DATABASE_URL),
        echo=settings.DEBUG and settings.LOG_LEVEL.upper() == "DEBUG",
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


engine = build_engine()

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()
