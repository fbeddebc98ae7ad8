# marketsync/services/reconciliation.py
"""
One-directional quantity reconciliation for a single resolved listing.

push: local stock is written to the marketplace when it differs from the
      quantity last synced. Nothing changes locally.
pull: the marketplace quantity replaces local stock when they differ, through
      the stock ledger (kind sync-reconciled, delta = remote - local).

Both directions finish by recording stock_synced/last_sync_at on the link.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from marketsync.core.enums import MovementKind, SyncDirection
from marketsync.core.exceptions import IdentityResolutionError, ValidationError
from marketsync.integrations.base import CatalogStore, MarketplaceClient
from marketsync.schemas.inventory import InventoryUnit, ListingLink, StockMovement
from marketsync.services.identity_resolver import Ambiguous, Resolution
from marketsync.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Applied:
    direction: SyncDirection
    previous_quantity: Optional[int]
    new_quantity: int
    movement: Optional[StockMovement] = None


@dataclass(frozen=True)
class NoOp:
    direction: SyncDirection
    quantity: int


ReconcileOutcome = Union[Applied, NoOp]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationEngine:

    def __init__(
        self,
        store: CatalogStore,
        marketplace: MarketplaceClient,
        ledger: StockLedger,
        reference_note: str = "Manual marketplace sync",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.marketplace = marketplace
        self.ledger = ledger
        self.reference_note = reference_note
        self.clock = clock

    async def reconcile(
        self,
        direction: Union[SyncDirection, str],
        link: ListingLink,
        unit: InventoryUnit,
        resolution: Resolution,
    ) -> ReconcileOutcome:
        if isinstance(resolution, Ambiguous):
            raise IdentityResolutionError(resolution.reason)

        direction = SyncDirection(direction)
        if direction == SyncDirection.PUSH:
            return await self._push(link, unit, resolution)
        return await self._pull(link, unit, resolution)

    async def _push(self, link: ListingLink, unit: InventoryUnit, resolution: Resolution) -> ReconcileOutcome:
        local = unit.stock_quantity
        if local == link.stock_synced:
            return NoOp(direction=SyncDirection.PUSH, quantity=local)

        if local < 0:
            raise ValidationError(f"Variant {unit.sku or unit.id} has negative stock ({local}); not published")

        if resolution.variation_id is None:
            await self.marketplace.set_item_quantity(resolution.item_id, local)
        else:
            await self.marketplace.set_variation_quantity(resolution.item_id, resolution.variation_id, local)

        # A failure here leaves the old stock_synced, so the next run pushes again
        async with self.store.unit_of_work():
            await self.store.update_listing_link(
                link.id,
                stock_synced=local,
                last_sync_at=self.clock(),
                status=resolution.item_status,
            )

        logger.info(
            f"Pushed {local} to {self._coordinate(resolution)} for variant {unit.sku or unit.id} "
            f"(last synced {link.stock_synced})"
        )
        return Applied(direction=SyncDirection.PUSH, previous_quantity=link.stock_synced, new_quantity=local)

    async def _pull(self, link: ListingLink, unit: InventoryUnit, resolution: Resolution) -> ReconcileOutcome:
        remote = resolution.remote_quantity
        local = unit.stock_quantity
        if remote == local:
            return NoOp(direction=SyncDirection.PULL, quantity=local)

        reference = f"{self.reference_note} ({self._coordinate(resolution)})"
        async with self.store.unit_of_work():
            movement = await self.ledger.record(
                unit.id,
                remote - local,
                MovementKind.SYNC_RECONCILED,
                reference,
                expected_quantity=local,
            )
            await self.store.update_listing_link(
                link.id,
                stock_synced=remote,
                last_sync_at=self.clock(),
                status=resolution.item_status,
            )

        logger.info(
            f"Pulled {remote} from {self._coordinate(resolution)} for variant {unit.sku or unit.id} "
            f"(was {local}, delta {remote - local:+d})"
        )
        return Applied(direction=SyncDirection.PULL, previous_quantity=local, new_quantity=remote, movement=movement)

    @staticmethod
    def _coordinate(resolution: Resolution) -> str:
        if resolution.variation_id is None:
            return f"item {resolution.item_id}"
        return f"item {resolution.item_id} variation {resolution.variation_id}"
