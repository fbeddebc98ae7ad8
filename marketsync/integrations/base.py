"""
Interfaces for the two stateful collaborators of stock reconciliation.

CatalogStore is the local inventory (variants, listing links, stock ledger).
MarketplaceClient is the remote catalog, with credentials handled by the
implementation. Reconciliation code only talks to these interfaces, so both
sides can be swapped for in-memory fakes.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, List, Optional, Tuple

from marketsync.schemas.inventory import (
    InventoryUnit,
    LinkWithUnit,
    ListingLink,
    StockMovement,
    StockMovementCreate,
)
from marketsync.schemas.marketplace import RemoteItem


class CatalogStore(ABC):

    @abstractmethod
    async def get_listing_links(self, platform: str) -> List[LinkWithUnit]:
        """All listing links for a platform, each joined with its inventory unit"""
        pass

    @abstractmethod
    async def get_inventory_unit(self, unit_id: str) -> InventoryUnit:
        """Raises InventoryUnitNotFoundError if the unit does not exist"""
        pass

    @abstractmethod
    async def get_low_stock_units(self) -> List[InventoryUnit]:
        """Units whose stock_quantity is at or below min_stock_alert"""
        pass

    @abstractmethod
    async def set_inventory_quantity(self, unit_id: str, quantity: int) -> None:
        pass

    @abstractmethod
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
        """
        Update the given fields; None leaves a field unchanged.
        clear_remote_variation sets remote_variation_id back to None.
        """
        pass

    @abstractmethod
    async def upsert_listing_link(
        self,
        unit_id: str,
        platform: str,
        remote_item_id: str,
        remote_variation_id: Optional[str] = None,
        url: Optional[str] = None,
        price: Optional[float] = None,
    ) -> ListingLink:
        """Create the (unit, platform) link or re-point the existing one"""
        pass

    @abstractmethod
    async def get_links_for_remote_item(self, platform: str, remote_item_id: str) -> List[ListingLink]:
        """Links of any variant pointing at the given remote item"""
        pass

    @abstractmethod
    async def create_product(
        self,
        name: str,
        sku: Optional[str] = None,
        base_price: float = 0,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        """Create a product and return its id"""
        pass

    @abstractmethod
    async def create_inventory_unit(
        self,
        product_id: str,
        name: str,
        sku: Optional[str] = None,
        price_adjustment: float = 0,
        min_stock_alert: int = 5,
    ) -> InventoryUnit:
        """Create a variant with zero stock; stock arrives through the ledger"""
        pass

    @abstractmethod
    async def append_stock_movement(self, entry: StockMovementCreate) -> StockMovement:
        pass

    @abstractmethod
    async def get_stock_movements(self, unit_id: str) -> List[StockMovement]:
        """Movements for a unit ordered by creation time"""
        pass

    @abstractmethod
    def unit_of_work(self) -> AsyncContextManager[None]:
        """
        Delimit one logical transaction. Writes inside the block become visible
        together when the outermost block exits cleanly and are discarded if it
        raises. Nested blocks join the enclosing one.
        """
        pass


class MarketplaceClient(ABC):

    @abstractmethod
    async def get_remote_items(self, item_ids: List[str]) -> List[RemoteItem]:
        """Fetch items (with variations) for the given ids. Unknown ids are omitted."""
        pass

    @abstractmethod
    async def set_item_quantity(self, item_id: str, quantity: int) -> None:
        pass

    @abstractmethod
    async def set_variation_quantity(self, item_id: str, variation_id: str, quantity: int) -> None:
        pass

    @abstractmethod
    async def list_seller_items(
        self,
        status: Optional[str] = "active",
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[RemoteItem], int]:
        """One page of the authenticated seller's items and the seller's total item count"""
        pass
