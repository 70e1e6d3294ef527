"""
Middleware package.
"""
from storefront.middleware.error_handler import ErrorHandlerMiddleware
from storefront.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
]
