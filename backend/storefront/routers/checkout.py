"""
Checkout routes - payment intent lifecycle.
"""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AnonymousId, OptionalUser
from storefront.core.database import get_db_session
from storefront.schemas.cart import (
    CreateIntentRequest,
    CreateIntentResponse,
    UpdateIntentRequest,
    UpdateIntentResponse,
)
from storefront.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])


async def get_checkout_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CheckoutService:
    return CheckoutService(session)


@router.post("/create-intent", response_model=CreateIntentResponse)
async def create_intent(
    body: CreateIntentRequest,
    checkout: Annotated[CheckoutService, Depends(get_checkout_service)],
    user: OptionalUser,
    anonymous_id: AnonymousId,
) -> CreateIntentResponse:
    """Reserve stock and open a payment intent for a cart or a single item."""
    result = await checkout.create_payment_intent(
        cart_id=body.cart_id,
        direct_item=body.direct_item.model_dump() if body.direct_item else None,
        currency=body.currency,
        user=user,
        anonymous_id=anonymous_id,
        locale=body.locale,
    )
    return CreateIntentResponse.model_validate(result)


@router.post("/update-intent", response_model=UpdateIntentResponse)
async def update_intent(
    body: UpdateIntentRequest,
    checkout: Annotated[CheckoutService, Depends(get_checkout_service)],
) -> UpdateIntentResponse:
    """Apply the selected shipping rate and address to the intent."""
    result = await checkout.update_payment_intent(
        body.payment_intent_id,
        shipping_amount=body.shipping_amount,
        shipping_rate_id=body.shipping_rate_id,
        shipping_details=body.shipping_details.model_dump() if body.shipping_details else None,
        currency=body.currency,
    )
    return UpdateIntentResponse.model_validate(result)
