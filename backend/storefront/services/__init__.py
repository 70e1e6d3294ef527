"""
Services package for business logic layer.
"""
from storefront.services.shippo_client import ShippoAPIError, ShippoClient
from storefront.services.stripe_client import StripeAPIError, StripeClient

__all__ = [
    "StripeClient",
    "StripeAPIError",
    "ShippoClient",
    "ShippoAPIError",
]
