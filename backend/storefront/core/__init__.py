"""
Core package containing configuration, database, security, errors and logging.
"""
from storefront.core.config import settings
from storefront.core.database import Base, DbSession, get_db_session
from storefront.core.errors import AppError, ErrorCode
from storefront.core.logging import configure_logging, get_logger
from storefront.core.security import (
    create_access_token,
    decode_access_token,
    verify_stripe_signature,
    verify_svix_signature,
)

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "AppError",
    "ErrorCode",
    "configure_logging",
    "get_logger",
    "create_access_token",
    "decode_access_token",
    "verify_stripe_signature",
    "verify_svix_signature",
]
