"""
Schemas for the local side of reconciliation: inventory units, listing links
and stock movements as they cross the Catalog Store boundary.
"""
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from marketsync.core.enums import ListingStatus, MovementKind, PlatformName
from .base import BaseSchema


class InventoryUnit(BaseSchema):
    """A sellable product variant with its own on-hand quantity."""
    id: str
    product_id: Optional[str] = None
    name: Optional[str] = None
    sku: Optional[str] = None
    stock_quantity: int = 0
    min_stock_alert: int = 5


class ListingLink(BaseSchema):
    id: str
    inventory_unit_id: str
    platform: str = PlatformName.MERCADOLIBRE.value
    remote_item_id: Optional[str] = None
    remote_variation_id: Optional[str] = None
    stock_synced: Optional[int] = None
    last_sync_at: Optional[datetime] = None
    status: Optional[str] = ListingStatus.ACTIVE.value
    url: Optional[str] = None
    price: Optional[float] = None


class LinkWithUnit(BaseSchema):
    """A listing link joined with its inventory unit (unit is None if the join found nothing)."""
    link: ListingLink
    unit: Optional[InventoryUnit] = None


class StockMovementCreate(BaseSchema):
    inventory_unit_id: str
    delta: int
    kind: MovementKind
    reference: Optional[str] = None

    @field_validator("delta")
    @classmethod
    def delta_not_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("A stock movement must change the quantity")
        return v


class StockMovement(BaseSchema):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)

    id: int
    inventory_unit_id: str
    delta: int
    kind: MovementKind
    reference: Optional[str] = None
    created_at: datetime


class StockAdjustmentCreate(BaseSchema):
    """Body of a manual stock adjustment request."""
    delta: int
    kind: MovementKind = MovementKind.ADJUSTED
    reference: Optional[str] = Field(default=None, max_length=500)


class ListingLinkCreate(BaseSchema):
    """Body of a manual link request: bind a variant to a marketplace coordinate."""
    variant_id: str
    ml_item_id: str
    ml_variation_id: Optional[str] = None

    @field_validator("variant_id", "ml_item_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class LedgerCheck(BaseSchema):
    inventory_unit_id: str
    initial_quantity: int
    reconstructed_quantity: int
    stored_quantity: int
    consistent: bool
