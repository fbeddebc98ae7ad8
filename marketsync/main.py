# marketsync/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI

from marketsync.core.config import get_settings
from marketsync.core.logging_config import configure_logging
from marketsync.routes import health, inventory
from marketsync.routes.platforms.mercadolibre import router as mercadolibre_router
from marketsync.scheduler import start_scheduler, stop_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = get_settings()

    if settings.SYNC_SCHEDULE_ENABLED:
        await start_scheduler(settings)
    try:
        yield
    finally:
        await stop_scheduler()


app = FastAPI(
    title="marketsync",
    description="Stock reconciliation between local inventory and Mercado Libre",
    lifespan=lifespan
)

app.include_router(health.router)
app.include_router(inventory.router)
app.include_router(mercadolibre_router)
