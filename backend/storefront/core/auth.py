"""
Request identity dependencies.

Sessions come from the external auth provider; the API only checks the
bearer JWT and loads the matching user by provider id (``sub``).
"""
from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.core.config import settings
from storefront.core.database import DbSession
from storefront.core.errors import AppError, ErrorCode, forbidden
from storefront.core.i18n import Language, resolve_language
from storefront.core.security import decode_access_token
from storefront.models.user import User
from storefront.repositories.user import UserRepository

bearer_scheme = HTTPBearer(auto_error=False)

Credentials = Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]


def _unauthorized(message: str = "Authentication required") -> AppError:
    return AppError(ErrorCode.UNAUTHORIZED, message, 401)


async def _load_user(session: DbSession, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[User]:
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise AppError(ErrorCode.INVALID_TOKEN, "Invalid or expired token", 401)
    user = await UserRepository(session).get_by_clerk_id(payload["sub"])
    if user is None:
        raise _unauthorized("User not found")
    return user


async def get_optional_user(session: DbSession, credentials: Credentials) -> Optional[User]:
    """Current user when a valid token is sent, otherwise None."""
    return await _load_user(session, credentials)


async def get_current_user(session: DbSession, credentials: Credentials) -> User:
    user = await _load_user(session, credentials)
    if user is None:
        raise _unauthorized()
    return user


async def require_admin(user: Annotated[User, Depends(get_current_user)]) -> User:
    if not user.is_admin:
        raise forbidden("Admin access required")
    return user


def get_anonymous_id(request: Request) -> Optional[str]:
    return request.cookies.get(settings.cart_cookie_name)


def get_language(request: Request) -> Language:
    """Language from ``?locale=`` or the Accept-Language header."""
    locale = request.query_params.get("locale") or request.headers.get("accept-language", "")
    return resolve_language(locale.split(",")[0].strip() or None)


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
AdminUser = Annotated[User, Depends(require_admin)]
AnonymousId = Annotated[Optional[str], Depends(get_anonymous_id)]
RequestLanguage = Annotated[Language, Depends(get_language)]
