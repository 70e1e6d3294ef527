"""
Storefront API - catalog, cart, checkout and back-office for a small shop.
"""
