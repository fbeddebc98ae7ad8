# marketsync/services/catalog_store.py
"""
PostgreSQL implementation of the CatalogStore interface.

Write methods only flush; they become durable when the enclosing
unit_of_work() commits. A failing unit of work rolls the session back, so a
quantity write is never committed without its stock movement.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketsync.core.enums import MovementKind
from marketsync.core.exceptions import (
    InventoryUnitNotFoundError,
    ListingNotFoundError,
    StoreWriteError,
)
from marketsync.integrations.base import CatalogStore
from marketsync.models.platform_listing import PlatformListing
from marketsync.models.product import Product, ProductVariant
from marketsync.models.stock_movement import StockMovement as StockMovementRow
from marketsync.schemas.inventory import (
    InventoryUnit,
    LinkWithUnit,
    ListingLink,
    StockMovement,
    StockMovementCreate,
)

logger = logging.getLogger(__name__)


def _to_unit(variant: ProductVariant) -> InventoryUnit:
    return InventoryUnit(
        id=variant.id,
        product_id=variant.product_id,
        name=variant.name,
        sku=variant.sku,
        stock_quantity=variant.stock_quantity or 0,
        min_stock_alert=variant.min_stock_alert if variant.min_stock_alert is not None else 5,
    )


def _to_link(listing: PlatformListing) -> ListingLink:
    return ListingLink(
        id=listing.id,
        inventory_unit_id=listing.product_variant_id,
        platform=listing.platform,
        remote_item_id=listing.external_id,
        remote_variation_id=listing.external_variant_id,
        stock_synced=listing.stock_synced,
        last_sync_at=listing.last_sync_at,
        status=listing.status,
        url=listing.url,
        price=float(listing.price) if listing.price is not None else None,
    )


def _to_movement(row: StockMovementRow) -> StockMovement:
    return StockMovement(
        id=row.id,
        inventory_unit_id=row.product_variant_id,
        delta=row.quantity,
        kind=MovementKind(row.kind),
        reference=row.reference,
        created_at=row.created_at,
    )


class SqlCatalogStore(CatalogStore):

    def __init__(self, db: AsyncSession):
        self.db = db
        self._uow_depth = 0

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[None]:
        if self._uow_depth:
            self._uow_depth += 1
            try:
                yield
            finally:
                self._uow_depth -= 1
            return

        self._uow_depth = 1
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Catalog write rolled back: {e}")
            raise StoreWriteError(f"Catalog write failed: {e}") from e
        except Exception:
            await self.db.rollback()
            raise
        finally:
            self._uow_depth = 0

    async def get_listing_links(self, platform: str) -> List[LinkWithUnit]:
        stmt = (
            select(PlatformListing, ProductVariant)
            .outerjoin(ProductVariant, PlatformListing.product_variant_id == ProductVariant.id)
            .where(PlatformListing.platform == platform)
            .order_by(PlatformListing.created_at, PlatformListing.id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return [
            LinkWithUnit(link=_to_link(listing), unit=_to_unit(variant) if variant is not None else None)
            for listing, variant in result.all()
        ]

    async def get_inventory_unit(self, unit_id: str) -> InventoryUnit:
        stmt = (
            select(ProductVariant)
            .where(ProductVariant.id == unit_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        variant = result.scalar_one_or_none()
        if variant is None:
            raise InventoryUnitNotFoundError(f"Variant {unit_id} not found")
        return _to_unit(variant)

    async def get_low_stock_units(self) -> List[InventoryUnit]:
        stmt = (
            select(ProductVariant)
            .where(ProductVariant.stock_quantity <= ProductVariant.min_stock_alert)
            .order_by(ProductVariant.stock_quantity, ProductVariant.sku)
        )
        result = await self.db.execute(stmt)
        return [_to_unit(v) for v in result.scalars().all()]

    async def set_inventory_quantity(self, unit_id: str, quantity: int) -> None:
        try:
            result = await self.db.execute(
                update(ProductVariant)
                .where(ProductVariant.id == unit_id)
                .values(stock_quantity=quantity)
            )
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not update stock for variant {unit_id}: {e}") from e
        if result.rowcount == 0:
            raise InventoryUnitNotFoundError(f"Variant {unit_id} not found")

    async def update_listing_link(
        self,
        link_id: str,
        *,
        remote_variation_id: Optional[str] = None,
        stock_synced: Optional[int] = None,
        last_sync_at: Optional[datetime] = None,
        status: Optional[str] = None,
        clear_remote_variation: bool = False,
    ) -> None:
        values = {}
        if clear_remote_variation:
            values["external_variant_id"] = None
        elif remote_variation_id is not None:
            values["external_variant_id"] = remote_variation_id
        if stock_synced is not None:
            values["stock_synced"] = stock_synced
        if last_sync_at is not None:
            values["last_sync_at"] = last_sync_at
        if status is not None:
            values["status"] = status
        if not values:
            return

        try:
            result = await self.db.execute(
                update(PlatformListing).where(PlatformListing.id == link_id).values(**values)
            )
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not update listing {link_id}: {e}") from e
        if result.rowcount == 0:
            raise ListingNotFoundError(f"Listing {link_id} not found")

    async def upsert_listing_link(
        self,
        unit_id: str,
        platform: str,
        remote_item_id: str,
        remote_variation_id: Optional[str] = None,
        url: Optional[str] = None,
        price: Optional[float] = None,
    ) -> ListingLink:
        # Raises InventoryUnitNotFoundError before anything is written
        await self.get_inventory_unit(unit_id)

        result = await self.db.execute(
            select(PlatformListing).where(
                PlatformListing.product_variant_id == unit_id,
                PlatformListing.platform == platform,
            )
        )
        listing = result.scalar_one_or_none()

        try:
            if listing is None:
                listing = PlatformListing(
                    product_variant_id=unit_id,
                    platform=platform,
                    external_id=remote_item_id,
                    external_variant_id=remote_variation_id,
                    url=url,
                    price=price,
                )
                self.db.add(listing)
            elif listing.external_id != remote_item_id or listing.external_variant_id != remote_variation_id:
                # Re-pointed to another coordinate: nothing has been synced there yet
                listing.external_id = remote_item_id
                listing.external_variant_id = remote_variation_id
                listing.stock_synced = None
                listing.last_sync_at = None
            if url is not None:
                listing.url = url
            if price is not None:
                listing.price = price
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not link variant {unit_id}: {e}") from e

        return _to_link(listing)

    async def get_links_for_remote_item(self, platform: str, remote_item_id: str) -> List[ListingLink]:
        result = await self.db.execute(
            select(PlatformListing)
            .where(PlatformListing.platform == platform, PlatformListing.external_id == remote_item_id)
            .order_by(PlatformListing.created_at, PlatformListing.id)
        )
        return [_to_link(listing) for listing in result.scalars().all()]

    async def create_product(
        self,
        name: str,
        sku: Optional[str] = None,
        base_price: float = 0,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        product = Product(
            name=name,
            sku=sku,
            base_price=base_price,
            cost_price=0,
            description=description,
            is_active=is_active,
        )
        try:
            self.db.add(product)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not create product {sku or name}: {e}") from e
        return product.id

    async def create_inventory_unit(
        self,
        product_id: str,
        name: str,
        sku: Optional[str] = None,
        price_adjustment: float = 0,
        min_stock_alert: int = 5,
    ) -> InventoryUnit:
        variant = ProductVariant(
            product_id=product_id,
            name=name,
            sku=sku,
            price_adjustment=price_adjustment,
            stock_quantity=0,
            min_stock_alert=min_stock_alert,
        )
        try:
            self.db.add(variant)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not create variant {sku or name}: {e}") from e
        return _to_unit(variant)

    async def append_stock_movement(self, entry: StockMovementCreate) -> StockMovement:
        row = StockMovementRow(
            product_variant_id=entry.inventory_unit_id,
            kind=MovementKind(entry.kind).value,
            quantity=entry.delta,
            reference=entry.reference,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.db.add(row)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not record stock movement for {entry.inventory_unit_id}: {e}") from e
        return _to_movement(row)

    async def get_stock_movements(self, unit_id: str) -> List[StockMovement]:
        result = await self.db.execute(
            select(StockMovementRow)
            .where(StockMovementRow.product_variant_id == unit_id)
            .order_by(StockMovementRow.created_at, StockMovementRow.id)
        )
        return [_to_movement(row) for row in result.scalars().all()]
