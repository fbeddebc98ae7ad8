from .auth import MercadoLibreAuthManager
from .client import MercadoLibreClient
from .token_store import SqlTokenStore

__all__ = ['MercadoLibreAuthManager', 'MercadoLibreClient', 'SqlTokenStore']
