# marketsync/services/sync_runner.py
"""
Runs one stock sync outside a request: opens its own session, wires the SQL
store and the Mercado Libre client, and records the run in the activity log.
Used by the CLI and the scheduler.
"""

import logging
from typing import Optional, Union

from marketsync.core.config import Settings, get_settings
from marketsync.core.enums import SyncDirection
from marketsync.database import async_session
from marketsync.services.activity_logger import ActivityLogger
from marketsync.services.catalog_store import SqlCatalogStore
from marketsync.services.mercadolibre.auth import MercadoLibreAuthManager
from marketsync.services.mercadolibre.client import MercadoLibreClient
from marketsync.services.mercadolibre.token_store import SqlTokenStore
from marketsync.services.sync_orchestrator import SyncOrchestrator, SyncReport, run_sync_exclusive

logger = logging.getLogger(__name__)


async def run_standalone_sync(
    direction: Union[SyncDirection, str],
    settings: Optional[Settings] = None,
) -> SyncReport:
    settings = settings or get_settings()

    async with async_session() as db:
        orchestrator = SyncOrchestrator(
            SqlCatalogStore(db),
            MercadoLibreClient(settings, MercadoLibreAuthManager(settings, token_store=SqlTokenStore())),
            platform=settings.SYNC_PLATFORM,
            reference_note=settings.SYNC_REFERENCE_NOTE,
        )
        report = await run_sync_exclusive(orchestrator, direction)
        await ActivityLogger(db).log_sync(report)

    return report
