"""
Marketplace-side aggregates. Read-only from the point of view of reconciliation.
"""
from typing import List, Optional

from pydantic import Field, field_validator

from .base import BaseSchema


class RemoteVariation(BaseSchema):
    id: str
    name: Optional[str] = None  # Attribute values joined, e.g. "Rojo / M"
    price: Optional[float] = None
    available_quantity: int = 0
    seller_custom_field: Optional[str] = None  # Seller-supplied cross-reference key


class RemoteItem(BaseSchema):
    id: str
    title: Optional[str] = None
    status: Optional[str] = None
    price: Optional[float] = None
    permalink: Optional[str] = None
    seller_sku: Optional[str] = None
    available_quantity: int = 0
    variations: List[RemoteVariation] = Field(default_factory=list)

    def find_variation(self, variation_id: str) -> Optional[RemoteVariation]:
        for variation in self.variations:
            if variation.id == variation_id:
                return variation
        return None


class ItemImportRequest(BaseSchema):
    """Body of an import request: create a product from a marketplace item."""
    ml_item_id: str

    @field_validator("ml_item_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()
