"""
Customer order routes.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import CurrentUser, OptionalUser
from storefront.core.database import get_db_session
from storefront.schemas.order import CustomerRefundRequest, OrderResponse, OrderSummary
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


async def get_order_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> OrderService:
    return OrderService(session)


Orders = Annotated[OrderService, Depends(get_order_service)]


@router.get("", response_model=list[OrderSummary])
async def list_my_orders(orders: Orders, user: CurrentUser) -> list[OrderSummary]:
    """Orders of the signed-in customer, newest first."""
    return [OrderSummary.model_validate(o) for o in await orders.list_user_orders(user.id)]


@router.get("/verify", response_model=OrderResponse)
async def verify_order(
    orders: Orders,
    user: OptionalUser,
    payment_intent_id: str = Query(..., alias="paymentIntentId", min_length=1),
) -> OrderResponse:
    """Checkout success lookup: the order created for a payment intent."""
    order = await orders.verify_order(payment_intent_id, user.id if user else None)
    return OrderResponse.model_validate(order)


@router.post("/refund-request", response_model=OrderResponse)
async def request_refund(
    body: CustomerRefundRequest,
    orders: Orders,
    user: CurrentUser,
) -> OrderResponse:
    order = await orders.request_refund(
        order_id=body.order_id,
        user_id=user.id,
        reason=body.reason,
        request_type=body.type,
    )
    return OrderResponse.model_validate(order)


@router.get("/{id_or_number}", response_model=OrderResponse)
async def get_my_order(id_or_number: str, orders: Orders, user: CurrentUser) -> OrderResponse:
    order = await orders.get_order_for_user(id_or_number, user.id)
    return OrderResponse.model_validate(order)
