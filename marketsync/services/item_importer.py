# marketsync/services/item_importer.py
"""
Creates a local product from one of the seller's marketplace items.

The product gets one variant per remote variation (a single "Default" variant
when the item has none), opening stock equal to the remote quantity, and a
listing link per variant. Links carry no variation id; the identity resolver
recovers it from the variant SKU on the first sync.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from marketsync.core.enums import ListingStatus, MovementKind, PlatformName
from marketsync.core.exceptions import ListingAlreadyLinkedError, RemoteItemNotFoundError
from marketsync.integrations.base import CatalogStore, MarketplaceClient
from marketsync.schemas.marketplace import RemoteItem, RemoteVariation
from marketsync.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

_KNOWN_STATUSES = {s.value for s in ListingStatus}


@dataclass
class ImportedVariant:
    variant_id: str
    name: str
    sku: Optional[str]
    remote_variation_id: Optional[str]
    quantity: int


@dataclass
class ImportResult:
    product_id: str
    product_name: str
    product_sku: str
    item_id: str
    platform: str
    variants: List[ImportedVariant] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "product": {"id": self.product_id, "name": self.product_name, "sku": self.product_sku},
            "variants": [
                {
                    "id": v.variant_id,
                    "name": v.name,
                    "sku": v.sku,
                    "ml_variation_id": v.remote_variation_id,
                    "stock_quantity": v.quantity,
                }
                for v in self.variants
            ],
        }


def product_sku(item: RemoteItem) -> str:
    return (item.seller_sku or "").strip() or f"ML-{item.id}"


def variant_sku(base_sku: str, variation: RemoteVariation) -> str:
    return (variation.seller_custom_field or "").strip() or f"{base_sku}-{variation.id}"


class ItemImporter:

    def __init__(
        self,
        store: CatalogStore,
        marketplace: MarketplaceClient,
        platform: str = PlatformName.MERCADOLIBRE.value,
    ):
        self.store = store
        self.marketplace = marketplace
        self.platform = platform
        self.ledger = StockLedger(store)

    async def import_item(self, item_id: str) -> ImportResult:
        """
        Import a marketplace item as a new product.

        Raises:
            ListingAlreadyLinkedError: A local variant already links to the item
            RemoteItemNotFoundError: The marketplace did not return the item
            MarketplaceAuthError / MarketplaceAPIError: From the marketplace client
            StoreWriteError: Nothing was created
        """
        existing = await self.store.get_links_for_remote_item(self.platform, item_id)
        if existing:
            raise ListingAlreadyLinkedError(
                f"Item {item_id} is already linked to variant {existing[0].inventory_unit_id}"
            )

        items = await self.marketplace.get_remote_items([item_id])
        item = next((i for i in items if i.id == item_id), None)
        if item is None:
            raise RemoteItemNotFoundError(f"Item {item_id} not found on {self.platform}")

        base_price = item.price or 0
        sku = product_sku(item)
        name = item.title or item.id
        reference = f"Imported from Mercado Libre item {item.id}"

        async with self.store.unit_of_work():
            product_id = await self.store.create_product(
                name=name,
                sku=sku,
                base_price=base_price,
                description=f"Imported from Mercado Libre - {item.id}",
                is_active=item.status == ListingStatus.ACTIVE.value,
            )
            result = ImportResult(
                product_id=product_id,
                product_name=name,
                product_sku=sku,
                item_id=item.id,
                platform=self.platform,
            )

            if item.variations:
                specs = [
                    (v.name or f"Variation {v.id}", variant_sku(sku, v), v.id,
                     v.available_quantity, (v.price - base_price) if v.price is not None else 0)
                    for v in item.variations
                ]
            else:
                specs = [("Default", sku, None, item.available_quantity, 0)]

            for variant_name, code, variation_id, quantity, price_adjustment in specs:
                unit = await self.store.create_inventory_unit(
                    product_id,
                    variant_name,
                    sku=code,
                    price_adjustment=price_adjustment,
                )
                if quantity > 0:
                    await self.ledger.record(unit.id, quantity, MovementKind.RECEIVED, reference)

                link = await self.store.upsert_listing_link(
                    unit.id,
                    self.platform,
                    item.id,
                    url=item.permalink,
                    price=base_price + price_adjustment,
                )
                await self.store.update_listing_link(
                    link.id,
                    stock_synced=quantity,
                    last_sync_at=datetime.now(timezone.utc),
                    status=item.status if item.status in _KNOWN_STATUSES else None,
                )
                result.variants.append(ImportedVariant(unit.id, variant_name, code, variation_id, quantity))

        logger.info(f"Imported item {item.id} as product {sku} with {len(result.variants)} variants")
        return result
