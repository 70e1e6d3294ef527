"""
Admin order routes: listing, status workflow, refunds and shipping labels.
"""
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AdminUser
from storefront.core.database import get_db_session
from storefront.core.logging import get_logger
from storefront.models.order import OrderStatus
from storefront.schemas.order import (
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderSummary,
    PurchaseLabelRequest,
    RefundRequest,
    RefundResult,
)
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_service import OrderService

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


async def get_order_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> OrderService:
    return OrderService(session)


async def get_fulfillment_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> FulfillmentService:
    return FulfillmentService(session)


Orders = Annotated[OrderService, Depends(get_order_service)]
Fulfillment = Annotated[FulfillmentService, Depends(get_fulfillment_service)]


@router.get("", response_model=OrderListResponse)
async def list_orders(
    orders: Orders,
    admin: AdminUser,
    status: Optional[OrderStatus] = None,
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    """Paginated orders, filterable by status and order number / email."""
    results, total = await orders.list_orders_admin(
        status=status.value if status else None,
        search=search,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[OrderSummary.model_validate(o) for o in results],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, orders: Orders, admin: AdminUser) -> OrderResponse:
    return OrderResponse.model_validate(await orders.get_order_admin(order_id))


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_status(
    order_id: str,
    body: OrderStatusUpdate,
    orders: Orders,
    admin: AdminUser,
) -> OrderResponse:
    order = await orders.update_order_status(
        order_id,
        body.status.value,
        comment=body.comment,
        created_by=admin.id,
    )
    logger.info("Order status updated by admin", order_id=order_id, status=body.status.value, admin_id=admin.id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/refund", response_model=RefundResult)
async def refund_order(
    order_id: str,
    body: RefundRequest,
    orders: Orders,
    admin: AdminUser,
) -> RefundResult:
    """Refund all or part of the Stripe payment; the order status is unchanged."""
    result = await orders.process_refund(order_id, body.amount, body.reason)
    return RefundResult.model_validate(result)


@router.get("/{order_id}/shipping-rates")
async def shipping_rates(order_id: str, fulfillment: Fulfillment, admin: AdminUser) -> list[dict[str, Any]]:
    return await fulfillment.preview_shipping_rates(order_id)


@router.post("/{order_id}/purchase-label")
async def purchase_label(
    order_id: str,
    fulfillment: Fulfillment,
    admin: AdminUser,
    body: Optional[PurchaseLabelRequest] = None,
) -> dict[str, Any]:
    return await fulfillment.purchase_shipping_label(order_id, body.rate_id if body else None)


@router.post("/{order_id}/return-label")
async def return_label(
    order_id: str,
    fulfillment: Fulfillment,
    admin: AdminUser,
    preview: bool = False,
) -> dict[str, Any]:
    """Quote (``?preview=true``) or buy a prepaid return label."""
    return await fulfillment.create_return_label(order_id, preview=preview)
