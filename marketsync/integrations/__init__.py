from .base import CatalogStore, MarketplaceClient

__all__ = ['CatalogStore', 'MarketplaceClient']
