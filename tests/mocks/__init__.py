from .fake_catalog import InMemoryCatalogStore
from .fake_marketplace import FakeMarketplaceClient
from .fake_token_store import InMemoryTokenStore

__all__ = ['InMemoryCatalogStore', 'FakeMarketplaceClient', 'InMemoryTokenStore']
