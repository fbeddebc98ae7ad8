# marketsync/services/identity_resolver.py
"""
Maps a listing link to the remote coordinate whose quantity it mirrors.

A link either names its variation already, or it has to be recovered from the
local variant's SKU. Recovery tries two strategies in order:

1. the variation's seller_custom_field equals the SKU
2. the SKU contains the variation id (SKUs built as "<code>-<variation id>")

Anything else is Ambiguous; the resolver never falls back to the first
variation or to the item total. A recovered id is written back to the link so
the next run resolves it directly.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from marketsync.core.enums import ListingStatus
from marketsync.integrations.base import CatalogStore
from marketsync.schemas.inventory import InventoryUnit, ListingLink
from marketsync.schemas.marketplace import RemoteItem, RemoteVariation

logger = logging.getLogger(__name__)

CUSTOM_FIELD_MATCH = "custom_field"
SUBSTRING_MATCH = "substring"

_KNOWN_STATUSES = {s.value for s in ListingStatus}


@dataclass(frozen=True)
class ResolvedCoordinate:
    """A single remote variation mirrors the unit"""
    item_id: str
    variation_id: str
    remote_quantity: int
    item_status: Optional[str] = None
    recovered_by: Optional[str] = None  # Set when the variation id was discovered this run


@dataclass(frozen=True)
class NotApplicable:
    """The remote item has no variations; the item itself is the coordinate"""
    item_id: str
    remote_quantity: int
    item_status: Optional[str] = None

    @property
    def variation_id(self) -> None:
        return None


@dataclass(frozen=True)
class Ambiguous:
    """No single remote variation can be trusted for this unit"""
    item_id: str
    reason: str


Resolution = Union[ResolvedCoordinate, NotApplicable, Ambiguous]


def _status(item: RemoteItem) -> Optional[str]:
    return item.status if item.status in _KNOWN_STATUSES else None


def _match_custom_field(code: str, variations: List[RemoteVariation]) -> List[RemoteVariation]:
    return [
        v for v in variations
        if v.seller_custom_field is not None and v.seller_custom_field.strip() == code
    ]


def _match_substring(code: str, variations: List[RemoteVariation]) -> List[RemoteVariation]:
    return [v for v in variations if v.id and v.id in code]


class IdentityResolver:

    def __init__(self, store: CatalogStore):
        self.store = store

    def resolve(self, link: ListingLink, remote_item: RemoteItem, unit: InventoryUnit) -> Resolution:
        """Pure resolution, no persistence"""
        if not remote_item.variations:
            if link.remote_variation_id:
                logger.info(
                    f"Item {remote_item.id} no longer has variations; "
                    f"using item-level quantity for variant {unit.id}"
                )
            return NotApplicable(
                item_id=remote_item.id,
                remote_quantity=remote_item.available_quantity,
                item_status=_status(remote_item),
            )

        if link.remote_variation_id:
            variation = remote_item.find_variation(link.remote_variation_id)
            if variation is None:
                return Ambiguous(
                    item_id=remote_item.id,
                    reason=(
                        f"variation {link.remote_variation_id} no longer exists on item {remote_item.id} "
                        f"({len(remote_item.variations)} variations remain); relink required"
                    ),
                )
            return ResolvedCoordinate(
                item_id=remote_item.id,
                variation_id=variation.id,
                remote_quantity=variation.available_quantity,
                item_status=_status(remote_item),
            )

        code = (unit.sku or "").strip()
        if not code:
            return Ambiguous(
                item_id=remote_item.id,
                reason=f"item {remote_item.id} has variations but variant {unit.id} has no SKU to match",
            )

        for strategy, matcher in ((CUSTOM_FIELD_MATCH, _match_custom_field), (SUBSTRING_MATCH, _match_substring)):
            matches = matcher(code, remote_item.variations)
            if len(matches) == 1:
                variation = matches[0]
                return ResolvedCoordinate(
                    item_id=remote_item.id,
                    variation_id=variation.id,
                    remote_quantity=variation.available_quantity,
                    item_status=_status(remote_item),
                    recovered_by=strategy,
                )
            if len(matches) > 1:
                ids = ", ".join(v.id for v in matches)
                return Ambiguous(
                    item_id=remote_item.id,
                    reason=f"SKU {code} matches several variations of item {remote_item.id} ({ids})",
                )

        return Ambiguous(
            item_id=remote_item.id,
            reason=(
                f"SKU {code} matches none of the {len(remote_item.variations)} variations "
                f"of item {remote_item.id}; link the variation manually"
            ),
        )

    async def ensure_coordinate(self, link: ListingLink, remote_item: RemoteItem, unit: InventoryUnit) -> Resolution:
        """
        Resolve, persisting a recovered variation id on the link. A variation id
        left over from before the item dropped its variations is cleared.
        """
        resolution = self.resolve(link, remote_item, unit)

        if isinstance(resolution, NotApplicable) and link.remote_variation_id:
            async with self.store.unit_of_work():
                await self.store.update_listing_link(link.id, clear_remote_variation=True)
            logger.info(f"Cleared variation {link.remote_variation_id} from listing {link.id}; item is now item-level")

        if isinstance(resolution, ResolvedCoordinate) and resolution.recovered_by:
            async with self.store.unit_of_work():
                await self.store.update_listing_link(link.id, remote_variation_id=resolution.variation_id)
            logger.info(
                f"Recovered variation {resolution.variation_id} for variant {unit.sku} "
                f"on item {remote_item.id} ({resolution.recovered_by} match)"
            )

        return resolution
