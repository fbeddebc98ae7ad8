from .base import BaseSchema
from .inventory import (
    InventoryUnit,
    ListingLink,
    LinkWithUnit,
    StockMovement,
    StockMovementCreate,
    StockAdjustmentCreate,
    ListingLinkCreate,
    LedgerCheck,
)
from .marketplace import RemoteItem, RemoteVariation

__all__ = [
    'BaseSchema',
    'InventoryUnit',
    'ListingLink',
    'LinkWithUnit',
    'StockMovement',
    'StockMovementCreate',
    'StockAdjustmentCreate',
    'ListingLinkCreate',
    'LedgerCheck',
    'RemoteItem',
    'RemoteVariation',
]
