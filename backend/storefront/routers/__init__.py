"""
API routers package.
"""
from storefront.routers.admin_logistics import router as admin_logistics_router
from storefront.routers.admin_orders import router as admin_orders_router
from storefront.routers.admin_products import router as admin_products_router
from storefront.routers.analytics import router as analytics_router
from storefront.routers.cart import router as cart_router
from storefront.routers.catalog import router as catalog_router
from storefront.routers.checkout import router as checkout_router
from storefront.routers.contact import router as contact_router
from storefront.routers.health import router as health_router
from storefront.routers.orders import router as orders_router
from storefront.routers.shipping import router as shipping_router
from storefront.routers.users import router as users_router
from storefront.routers.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "catalog_router",
    "cart_router",
    "checkout_router",
    "orders_router",
    "shipping_router",
    "analytics_router",
    "users_router",
    "contact_router",
    "webhooks_router",
    "admin_products_router",
    "admin_orders_router",
    "admin_logistics_router",
]
