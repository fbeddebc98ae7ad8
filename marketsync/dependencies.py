from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketsync.core.config import Settings, get_settings
from marketsync.database import async_session
from marketsync.integrations.base import CatalogStore, MarketplaceClient
from marketsync.services.activity_logger import ActivityLogger
from marketsync.services.catalog_store import SqlCatalogStore
from marketsync.services.mercadolibre.auth import MercadoLibreAuthManager
from marketsync.services.mercadolibre.client import MercadoLibreClient
from marketsync.services.mercadolibre.token_store import SqlTokenStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_catalog_store(db: AsyncSession = Depends(get_db)) -> CatalogStore:
    return SqlCatalogStore(db)


def get_auth_manager(settings: Settings = Depends(get_settings)) -> MercadoLibreAuthManager:
    return MercadoLibreAuthManager(settings, token_store=SqlTokenStore())


def get_marketplace_client(
    settings: Settings = Depends(get_settings),
    auth: MercadoLibreAuthManager = Depends(get_auth_manager),
) -> MarketplaceClient:
    return MercadoLibreClient(settings, auth_manager=auth)


def get_activity_logger(db: AsyncSession = Depends(get_db)) -> ActivityLogger:
    return ActivityLogger(db)
