"""
Shipping rate quotes for the checkout page.
"""
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db_session
from storefront.schemas.common import ShippingRatesRequest
from storefront.services.shipping_service import ShippingService

router = APIRouter(prefix="/shipping", tags=["shipping"])


async def get_shipping_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ShippingService:
    return ShippingService(session)


@router.post("/rates")
async def get_rates(
    body: ShippingRatesRequest,
    shipping: Annotated[ShippingService, Depends(get_shipping_service)],
) -> dict[str, Any]:
    """Cheapest Standard and Express rates for a cart or an explicit item list."""
    rates = await shipping.get_shipping_rates(
        address_to=body.address_to,
        cart_id=body.cart_id,
        items=[item.model_dump() for item in body.items] if body.items else None,
    )
    return {"rates": rates}
