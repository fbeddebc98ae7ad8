from .activity_log import ActivityLog
from .app_setting import AppSetting
from .product import Product, ProductVariant
from .platform_listing import PlatformListing
from .stock_movement import StockMovement

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ActivityLog',
    'AppSetting',
    'Product',
    'ProductVariant',
    'PlatformListing',
    'StockMovement',
]
