# marketsync/services/sync_orchestrator.py
"""
Drives a full stock synchronization pass over every listing link of a platform.

Per run:
1. Load listing links joined with their variants (the only run-fatal step)
2. Batch-fetch the remote items needed (all of them for pull, only links whose
   stock moved since the last sync for push)
3. Per link: resolve the remote coordinate, then reconcile
4. Collect counts and per-link errors into a SyncReport

Links are processed one after another; a failure on one link is recorded and
the run carries on with the next.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from marketsync.core.enums import PlatformName, SyncDirection, SyncStatus
from marketsync.core.exceptions import (
    MarketplaceAuthError,
    MarketplaceRateLimitError,
    SyncError,
    SyncInProgressError,
)
from marketsync.integrations.base import CatalogStore, MarketplaceClient
from marketsync.schemas.inventory import LinkWithUnit
from marketsync.schemas.marketplace import RemoteItem
from marketsync.services.identity_resolver import Ambiguous, IdentityResolver
from marketsync.services.reconciliation import Applied, ReconciliationEngine
from marketsync.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Summary of one orchestration run"""
    sync_run_id: str
    platform: str
    direction: SyncDirection
    started_at: datetime
    finished_at: Optional[datetime] = None
    total: int = 0
    synced: int = 0
    unchanged: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def status(self) -> SyncStatus:
        if not self.errors:
            return SyncStatus.SUCCESS
        if self.synced or self.unchanged:
            return SyncStatus.PARTIAL
        return SyncStatus.ERROR

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict:
        return {
            "success": True,
            "sync_run_id": self.sync_run_id,
            "platform": self.platform,
            "direction": self.direction.value,
            "status": self.status.value,
            "synced": self.synced,
            "unchanged": self.unchanged,
            "total": self.total,
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class SyncOrchestrator:

    def __init__(
        self,
        store: CatalogStore,
        marketplace: MarketplaceClient,
        platform: str = PlatformName.MERCADOLIBRE.value,
        reference_note: str = "Manual marketplace sync",
    ):
        self.store = store
        self.marketplace = marketplace
        self.platform = platform
        self.ledger = StockLedger(store)
        self.resolver = IdentityResolver(store)
        self.engine = ReconciliationEngine(store, marketplace, self.ledger, reference_note=reference_note)

    async def run_sync(self, direction: Union[SyncDirection, str]) -> SyncReport:
        direction = SyncDirection(direction)
        report = SyncReport(
            sync_run_id=str(uuid.uuid4()),
            platform=self.platform,
            direction=direction,
            started_at=datetime.now(timezone.utc),
        )
        logger.info(f"Starting {direction.value} stock sync {report.sync_run_id} for {self.platform}")

        try:
            entries = await self.store.get_listing_links(self.platform)
        except Exception as e:
            logger.error(f"Could not load {self.platform} listing links: {e}", exc_info=True)
            raise SyncError(f"Could not load {self.platform} listing links: {e}") from e

        report.total = len(entries)
        await self._process(direction, entries, report)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Stock sync {report.sync_run_id} finished: {report.synced} synced, "
            f"{report.unchanged} unchanged, {len(report.errors)} errors of {report.total}"
        )
        return report

    async def sync_link(self, direction: Union[SyncDirection, str], entry: LinkWithUnit) -> SyncReport:
        """Run the same pipeline for a single link (used after manual linking)"""
        direction = SyncDirection(direction)
        report = SyncReport(
            sync_run_id=str(uuid.uuid4()),
            platform=self.platform,
            direction=direction,
            started_at=datetime.now(timezone.utc),
            total=1,
        )
        await self._process(direction, [entry], report)
        report.finished_at = datetime.now(timezone.utc)
        return report

    async def _process(self, direction: SyncDirection, entries: List[LinkWithUnit], report: SyncReport) -> None:
        valid: List[LinkWithUnit] = []
        for entry in entries:
            problem = self._malformed(entry)
            if problem:
                logger.warning(problem)
                report.errors.append(problem)
            else:
                valid.append(entry)

        if direction == SyncDirection.PULL:
            needs_remote = valid
        else:
            needs_remote = [e for e in valid if self._push_pending(e)]

        items, fetch_errors = await self._fetch_remote_items(e.link.remote_item_id for e in needs_remote)

        for entry in valid:
            await self._sync_entry(direction, entry, items, fetch_errors, report)

    @staticmethod
    def _malformed(entry: LinkWithUnit) -> Optional[str]:
        link = entry.link
        if entry.unit is None:
            return f"Listing {link.id}: linked variant {link.inventory_unit_id} not found"
        if not link.remote_item_id:
            return f"Listing {link.id}: missing remote item id"
        return None

    @staticmethod
    def _push_pending(entry: LinkWithUnit) -> bool:
        return entry.unit.stock_quantity != entry.link.stock_synced

    @staticmethod
    def _label(entry: LinkWithUnit) -> str:
        unit = entry.unit
        return f"Item {entry.link.remote_item_id} (variant {unit.sku or unit.id})"

    async def _fetch_remote_items(self, item_ids: Iterable[str]) -> Tuple[Dict[str, RemoteItem], Dict[str, str]]:
        """
        Fetch distinct items in one batched call. If the batch fails, fall back
        to one call per item so a single bad item only fails its own links.
        Auth and rate-limit failures concern every item and skip the fallback.
        Returns (items by id, error message by id).
        """
        ids = sorted(set(item_ids))
        if not ids:
            return {}, {}

        try:
            items = await self.marketplace.get_remote_items(ids)
            return {item.id: item for item in items}, {}
        except MarketplaceAuthError as e:
            logger.error(f"Marketplace rejected credentials: {e}")
            return {}, {item_id: str(e) for item_id in ids}
        except MarketplaceRateLimitError as e:
            # Still limited after the client's backoff; no per-item fallback
            logger.error(f"Marketplace rate limit persists, skipping {len(ids)} items: {e}")
            return {}, {item_id: str(e) for item_id in ids}
        except Exception as e:
            logger.warning(f"Batch fetch of {len(ids)} items failed ({e}); retrying one by one")

        items: Dict[str, RemoteItem] = {}
        errors: Dict[str, str] = {}
        for item_id in ids:
            try:
                for item in await self.marketplace.get_remote_items([item_id]):
                    items[item.id] = item
            except Exception as e:
                logger.error(f"Failed to fetch item {item_id}: {e}")
                errors[item_id] = str(e)
        return items, errors

    async def _sync_entry(
        self,
        direction: SyncDirection,
        entry: LinkWithUnit,
        items: Dict[str, RemoteItem],
        fetch_errors: Dict[str, str],
        report: SyncReport,
    ) -> None:
        link, unit = entry.link, entry.unit
        label = self._label(entry)

        if direction == SyncDirection.PUSH and not self._push_pending(entry):
            report.unchanged += 1
            return

        if link.remote_item_id in fetch_errors:
            report.errors.append(f"{label}: {fetch_errors[link.remote_item_id]}")
            return

        remote_item = items.get(link.remote_item_id)
        if remote_item is None:
            logger.warning(f"{label}: remote item not returned by the marketplace")
            report.errors.append(f"{label}: remote item not found on the marketplace")
            return

        try:
            resolution = await self.resolver.ensure_coordinate(link, remote_item, unit)
            if isinstance(resolution, Ambiguous):
                logger.warning(f"{label}: skipped, {resolution.reason}")
                report.errors.append(f"{label}: {resolution.reason}")
                return

            outcome = await self.engine.reconcile(direction, link, unit, resolution)
        except Exception as e:
            logger.error(f"{label}: {direction.value} failed: {e}", exc_info=True)
            report.errors.append(f"{label}: {e}")
            return

        if isinstance(outcome, Applied):
            report.synced += 1
        else:
            report.unchanged += 1


# One in-process lock per platform so the API, CLI and scheduler never overlap
_run_locks: Dict[str, asyncio.Lock] = {}


def _lock_for(platform: str) -> asyncio.Lock:
    lock = _run_locks.get(platform)
    if lock is None:
        lock = _run_locks[platform] = asyncio.Lock()
    return lock


async def run_sync_exclusive(orchestrator: SyncOrchestrator, direction: Union[SyncDirection, str]) -> SyncReport:
    lock = _lock_for(orchestrator.platform)
    if lock.locked():
        raise SyncInProgressError(f"A {orchestrator.platform} stock sync is already running")
    async with lock:
        return await orchestrator.run_sync(direction)
