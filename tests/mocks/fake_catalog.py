import copy
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from marketsync.core.exceptions import (
    InventoryUnitNotFoundError,
    ListingNotFoundError,
    StoreWriteError,
)
from marketsync.integrations.base import CatalogStore
from marketsync.schemas.inventory import (
    InventoryUnit,
    LinkWithUnit,
    ListingLink,
    StockMovement,
    StockMovementCreate,
)


class InMemoryCatalogStore(CatalogStore):
    """
    Catalog store kept in dicts. unit_of_work snapshots state on entry and
    restores it if the block raises, like a database rollback.
    """

    def __init__(self):
        self.units: Dict[str, InventoryUnit] = {}
        self.links: Dict[str, ListingLink] = {}
        self.movements: List[StockMovement] = []
        self.products: Dict[str, dict] = {}
        self.link_updates: list = []  # Track calls for testing
        self.commits = 0
        self.rollbacks = 0

        # Toggles to test error scenarios
        self.fail_on_load = False
        self.fail_on_movement = False
        self.fail_on_link_update: Set[str] = set()

        self._depth = 0
        self._next_movement_id = 1
        self._next_id = 1
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def add_unit(self, unit_id: str, sku: Optional[str] = None, quantity: int = 0, min_stock_alert: int = 5) -> InventoryUnit:
        unit = InventoryUnit(
            id=unit_id,
            product_id=f"product-{unit_id}",
            name=f"Variant {unit_id}",
            sku=sku,
            stock_quantity=quantity,
            min_stock_alert=min_stock_alert,
        )
        self.units[unit_id] = unit
        return unit

    def add_link(
        self,
        link_id: str,
        unit_id: str,
        item_id: Optional[str],
        variation_id: Optional[str] = None,
        stock_synced: Optional[int] = None,
        platform: str = "mercadolibre",
    ) -> ListingLink:
        link = ListingLink(
            id=link_id,
            inventory_unit_id=unit_id,
            platform=platform,
            remote_item_id=item_id,
            remote_variation_id=variation_id,
            stock_synced=stock_synced,
        )
        self.links[link_id] = link
        return link

    def quantity(self, unit_id: str) -> int:
        return self.units[unit_id].stock_quantity

    def movements_for(self, unit_id: str) -> List[StockMovement]:
        return [m for m in self.movements if m.inventory_unit_id == unit_id]

    @asynccontextmanager
    async def unit_of_work(self):
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = copy.deepcopy((self.units, self.links, self.movements, self.products, self._next_movement_id))
        self._depth = 1
        try:
            yield
            self.commits += 1
        except Exception:
            self.units, self.links, self.movements, self.products, self._next_movement_id = snapshot
            self.rollbacks += 1
            raise
        finally:
            self._depth = 0

    async def get_listing_links(self, platform: str) -> List[LinkWithUnit]:
        if self.fail_on_load:
            raise StoreWriteError("database unavailable")
        entries = []
        for link in self.links.values():
            if link.platform != platform:
                continue
            unit = self.units.get(link.inventory_unit_id)
            entries.append(LinkWithUnit(link=link.model_copy(), unit=unit.model_copy() if unit else None))
        return entries

    async def get_inventory_unit(self, unit_id: str) -> InventoryUnit:
        unit = self.units.get(unit_id)
        if unit is None:
            raise InventoryUnitNotFoundError(f"Variant {unit_id} not found")
        return unit.model_copy()

    async def get_low_stock_units(self) -> List[InventoryUnit]:
        return [u.model_copy() for u in self.units.values() if u.stock_quantity <= u.min_stock_alert]

    async def set_inventory_quantity(self, unit_id: str, quantity: int) -> None:
        if unit_id not in self.units:
            raise InventoryUnitNotFoundError(f"Variant {unit_id} not found")
        self.units[unit_id] = self.units[unit_id].model_copy(update={"stock_quantity": quantity})

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
        if link_id in self.fail_on_link_update:
            raise StoreWriteError(f"Could not update listing {link_id}")
        if link_id not in self.links:
            raise ListingNotFoundError(f"Listing {link_id} not found")

        values = {
            "remote_variation_id": remote_variation_id,
            "stock_synced": stock_synced,
            "last_sync_at": last_sync_at,
            "status": status,
        }
        values = {k: v for k, v in values.items() if v is not None}
        if clear_remote_variation:
            values["remote_variation_id"] = None
        self.link_updates.append({"link_id": link_id, **values})
        self.links[link_id] = self.links[link_id].model_copy(update=values)

    async def upsert_listing_link(
        self,
        unit_id: str,
        platform: str,
        remote_item_id: str,
        remote_variation_id: Optional[str] = None,
        url: Optional[str] = None,
        price: Optional[float] = None,
    ) -> ListingLink:
        await self.get_inventory_unit(unit_id)
        extra = {k: v for k, v in (("url", url), ("price", price)) if v is not None}
        for link_id, link in self.links.items():
            if link.inventory_unit_id == unit_id and link.platform == platform:
                if link.remote_item_id != remote_item_id or link.remote_variation_id != remote_variation_id:
                    link = link.model_copy(update={
                        "remote_item_id": remote_item_id,
                        "remote_variation_id": remote_variation_id,
                        "stock_synced": None,
                        "last_sync_at": None,
                    })
                    self.links[link_id] = link
                if extra:
                    link = self.links[link_id] = link.model_copy(update=extra)
                return link.model_copy()
        link = self.add_link(f"link-{len(self.links) + 1}", unit_id, remote_item_id, remote_variation_id,
                             platform=platform)
        if extra:
            link = self.links[link.id] = link.model_copy(update=extra)
        return link.model_copy()

    async def get_links_for_remote_item(self, platform: str, remote_item_id: str) -> List[ListingLink]:
        return [
            link.model_copy() for link in self.links.values()
            if link.platform == platform and link.remote_item_id == remote_item_id
        ]

    async def create_product(
        self,
        name: str,
        sku: Optional[str] = None,
        base_price: float = 0,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        if sku and any(p["sku"] == sku for p in self.products.values()):
            raise StoreWriteError(f"Could not create product {sku}: duplicate SKU")
        product_id = f"product-{self._next_id}"
        self._next_id += 1
        self.products[product_id] = {
            "name": name,
            "sku": sku,
            "base_price": base_price,
            "description": description,
            "is_active": is_active,
        }
        return product_id

    async def create_inventory_unit(
        self,
        product_id: str,
        name: str,
        sku: Optional[str] = None,
        price_adjustment: float = 0,
        min_stock_alert: int = 5,
    ) -> InventoryUnit:
        if sku and any(u.sku == sku for u in self.units.values()):
            raise StoreWriteError(f"Could not create variant {sku}: duplicate SKU")
        unit = InventoryUnit(
            id=f"unit-{self._next_id}",
            product_id=product_id,
            name=name,
            sku=sku,
            stock_quantity=0,
            min_stock_alert=min_stock_alert,
        )
        self._next_id += 1
        self.units[unit.id] = unit
        return unit.model_copy()

    async def append_stock_movement(self, entry: StockMovementCreate) -> StockMovement:
        if self.fail_on_movement:
            raise StoreWriteError("stock_movements insert failed")
        self._clock += timedelta(seconds=1)
        movement = StockMovement(
            id=self._next_movement_id,
            inventory_unit_id=entry.inventory_unit_id,
            delta=entry.delta,
            kind=entry.kind,
            reference=entry.reference,
            created_at=self._clock,
        )
        self._next_movement_id += 1
        self.movements.append(movement)
        return movement

    async def get_stock_movements(self, unit_id: str) -> List[StockMovement]:
        return sorted(self.movements_for(unit_id), key=lambda m: (m.created_at, m.id))
