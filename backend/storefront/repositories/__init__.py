"""
Repository package for data access layer.
"""
from storefront.repositories.analytics import AnalyticsRepository, WebhookEventRepository
from storefront.repositories.base import BaseRepository
from storefront.repositories.cart import CartRepository
from storefront.repositories.order import OrderRepository
from storefront.repositories.product import CategoryRepository, ProductRepository, VariantRepository
from storefront.repositories.supplier import SupplierRepository
from storefront.repositories.user import UserRepository

__all__ = [
    "AnalyticsRepository",
    "BaseRepository",
    "CartRepository",
    "CategoryRepository",
    "OrderRepository",
    "ProductRepository",
    "SupplierRepository",
    "UserRepository",
    "VariantRepository",
    "WebhookEventRepository",
]
