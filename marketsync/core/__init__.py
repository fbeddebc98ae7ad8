"""
Core module exports.
"""
from .enums import (
    PlatformName,
    ListingStatus,
    MovementKind,
    SyncDirection,
    SyncStatus
)

from .exceptions import (
    BaseServiceError,
    InventoryServiceError,
    InventoryUnitNotFoundError,
    ListingNotFoundError,
    ValidationError,
    DatabaseError,
    StoreWriteError,
    StaleQuantityError,
    PlatformServiceError,
    MarketplaceAPIError,
    MarketplaceAuthError,
    MarketplaceRateLimitError,
    IdentityResolutionError,
    SyncError,
    SyncInProgressError,
    ListingAlreadyLinkedError,
    RemoteItemNotFoundError
)
