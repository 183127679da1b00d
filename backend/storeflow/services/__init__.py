"""Application services."""

from storeflow.services.access import StoreAccess
from storeflow.services.auth import AuthService
from storeflow.services.catalog import CatalogService
from storeflow.services.orders import OrderService
from storeflow.services.products import ProductService
from storeflow.services.profile import ProfileService
from storeflow.services.storage import StorageService
from storeflow.services.stores import StoreService

__all__ = [
    "AuthService",
    "CatalogService",
    "OrderService",
    "ProductService",
    "ProfileService",
    "StorageService",
    "StoreAccess",
    "StoreService",
]
