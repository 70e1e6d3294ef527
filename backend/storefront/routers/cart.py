"""
Cart routes.

Signed-in visitors are identified by their user id, everyone else by the
anonymous id kept in the cart cookie.
"""
import uuid
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AnonymousId, CurrentUser, OptionalUser, RequestLanguage
from storefront.core.config import settings
from storefront.core.database import get_db_session
from storefront.core.logging import get_logger
from storefront.schemas.cart import (
    AddToCartRequest,
    CalculateCartRequest,
    UpdateCartItemRequest,
)
from storefront.services.cart_service import CartIdentity, CartService

logger = get_logger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])

COOKIE_MAX_AGE = 60 * 60 * 24 * 30


async def get_cart_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CartService:
    return CartService(session)


Carts = Annotated[CartService, Depends(get_cart_service)]


def set_cart_cookie(response: Response, anonymous_id: str) -> None:
    response.set_cookie(
        settings.cart_cookie_name,
        anonymous_id,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        path="/",
    )


def _identity(user: OptionalUser, anonymous_id: Optional[str]) -> CartIdentity:
    if user is not None:
        return CartIdentity(user_id=user.id)
    return CartIdentity(anonymous_id=anonymous_id)


@router.get("")
async def get_cart(
    carts: Carts,
    user: OptionalUser,
    anonymous_id: AnonymousId,
    language: RequestLanguage,
) -> dict[str, Any]:
    """Current cart with priced lines; an empty cart when none exists yet."""
    return await carts.get_cart_summary(_identity(user, anonymous_id), language.value)


@router.post("/items", status_code=201)
async def add_item(
    body: AddToCartRequest,
    response: Response,
    carts: Carts,
    user: OptionalUser,
    anonymous_id: AnonymousId,
    language: RequestLanguage,
) -> dict[str, Any]:
    identity = _identity(user, anonymous_id)
    if identity.is_empty:
        identity.anonymous_id = str(uuid.uuid4())
        set_cart_cookie(response, identity.anonymous_id)
        logger.info("Anonymous cart id issued")

    await carts.add_to_cart(identity, body.variant_id, body.quantity)
    return await carts.get_cart_summary(identity, language.value)


@router.patch("/items/{item_id}")
async def update_item(
    item_id: str,
    body: UpdateCartItemRequest,
    carts: Carts,
    user: OptionalUser,
    anonymous_id: AnonymousId,
    language: RequestLanguage,
) -> dict[str, Any]:
    identity = _identity(user, anonymous_id)
    await carts.update_cart_line(identity, item_id, body.quantity)
    return await carts.get_cart_summary(identity, language.value)


@router.delete("/items/{item_id}")
async def remove_item(
    item_id: str,
    carts: Carts,
    user: OptionalUser,
    anonymous_id: AnonymousId,
    language: RequestLanguage,
) -> dict[str, Any]:
    identity = _identity(user, anonymous_id)
    await carts.remove_cart_line(identity, item_id)
    return await carts.get_cart_summary(identity, language.value)


@router.post("/merge")
async def merge_cart(
    response: Response,
    carts: Carts,
    user: CurrentUser,
    anonymous_id: AnonymousId,
    language: RequestLanguage,
) -> dict[str, Any]:
    """Fold the visitor's anonymous cart into the signed-in user's cart."""
    identity = CartIdentity(user_id=user.id)
    if anonymous_id:
        await carts.merge_anonymous_cart(user.id, anonymous_id)
        response.delete_cookie(settings.cart_cookie_name, path="/")
    else:
        await carts.get_or_create_cart(identity)
    return await carts.get_cart_summary(identity, language.value)


@router.get("/calculate")
async def calculate_cart(
    carts: Carts,
    user: OptionalUser,
    anonymous_id: AnonymousId,
    language: RequestLanguage,
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
) -> dict[str, Any]:
    """Totals for the current cart in the requested currency."""
    query = CalculateCartRequest(currency=currency)
    summary = await carts.get_cart_summary(_identity(user, anonymous_id), language.value, query.currency)
    return summary["calculation"]
