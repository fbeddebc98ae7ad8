class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class InventoryServiceError(BaseServiceError):
    """Base exception for local inventory errors."""
    pass

class InventoryUnitNotFoundError(InventoryServiceError):
    """Raised when a product variant is not found."""
    pass

class ListingNotFoundError(InventoryServiceError):
    """Raised when a listing link is not found."""
    pass

class ValidationError(BaseServiceError):
    """Raised when data validation fails."""
    pass

class DatabaseError(BaseServiceError):
    """Exception raised for database-related errors."""
    pass

class StoreWriteError(DatabaseError):
    """Raised when a catalog store write cannot be committed."""
    pass

class StaleQuantityError(InventoryServiceError):
    """Raised when the stored quantity changed between read and write."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for marketplace errors."""
    pass

class MarketplaceAPIError(PlatformServiceError):
    """Raised when Mercado Libre API calls fail."""
    pass

class MarketplaceAuthError(MarketplaceAPIError):
    """Raised when Mercado Libre rejects or cannot issue credentials."""
    pass

class MarketplaceRateLimitError(MarketplaceAPIError):
    """Raised when Mercado Libre answers 429."""
    pass

class IdentityResolutionError(PlatformServiceError):
    """Raised when a listing cannot be mapped to a single remote variation."""
    pass

class SyncError(PlatformServiceError):
    """Raised when a synchronization run cannot start."""
    pass

class SyncInProgressError(SyncError):
    """Raised when a run for the same platform is already executing."""
    pass

class ListingAlreadyLinkedError(ValidationError):
    """Raised when importing a marketplace item that is already linked to a product."""
    pass

class RemoteItemNotFoundError(PlatformServiceError):
    """Raised when Mercado Libre does not return the requested item."""
    pass
