"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from storefront.models.analytics import AnalyticsEvent, WebhookEvent
from storefront.models.cart import Cart, CartItem, CartStatus
from storefront.models.catalog import (
    Category,
    CategoryTranslation,
    Product,
    ProductInventory,
    ProductMedia,
    ProductPricing,
    ProductStatus,
    ProductTranslation,
    ProductVariant,
    product_categories,
)
from storefront.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    Payment,
    PaymentStatus,
    Shipment,
    ShipmentStatus,
)
from storefront.models.supplier import Incoterm, Supplier, SupplierType
from storefront.models.user import User, UserRole

__all__ = [
    "AnalyticsEvent",
    "WebhookEvent",
    "Cart",
    "CartItem",
    "CartStatus",
    "Category",
    "CategoryTranslation",
    "Product",
    "ProductInventory",
    "ProductMedia",
    "ProductPricing",
    "ProductStatus",
    "ProductTranslation",
    "ProductVariant",
    "product_categories",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "Payment",
    "PaymentStatus",
    "Shipment",
    "ShipmentStatus",
    "Incoterm",
    "Supplier",
    "SupplierType",
    "User",
    "UserRole",
]
