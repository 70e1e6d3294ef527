"""
Order service - order creation, queries, status workflow and refunds.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import AppError, ErrorCode, forbidden, not_found, validation_error
from storefront.core.i18n import resolve_language
from storefront.core.logging import get_logger
from storefront.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    Payment,
    PaymentStatus,
)
from storefront.repositories.order import OrderRepository
from storefront.services.inventory_service import InventoryService, StockLine
from storefront.services.notification_service import NotificationService, notification_service
from storefront.services.pricing import (
    CartCalculation,
    calculate_cart,
    from_minor_units,
    round_half_even,
    to_decimal,
    to_minor_units,
)
from storefront.services.stripe_client import StripeAPIError, StripeClient, stripe_client

logger = get_logger(__name__)

VALID_STATUS_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING.value: {OrderStatus.PAID.value, OrderStatus.CANCELLED.value},
    OrderStatus.PAID.value: {
        OrderStatus.SHIPPED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUND_REQUESTED.value,
        OrderStatus.REFUNDED.value,
    },
    OrderStatus.SHIPPED.value: {OrderStatus.IN_TRANSIT.value, OrderStatus.DELIVERED.value},
    OrderStatus.IN_TRANSIT.value: {OrderStatus.DELIVERED.value},
    OrderStatus.DELIVERED.value: {OrderStatus.REFUND_REQUESTED.value, OrderStatus.REFUNDED.value},
    OrderStatus.REFUND_REQUESTED.value: {OrderStatus.REFUNDED.value, OrderStatus.PAID.value},
    OrderStatus.CANCELLED.value: set(),
    OrderStatus.REFUNDED.value: set(),
}

REFUNDING_STATUSES = {OrderStatus.REFUNDED.value, OrderStatus.CANCELLED.value}
EMAIL_STATUSES = {
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.REFUNDED.value,
    OrderStatus.CANCELLED.value,
}
AMOUNT_TOLERANCE = Decimal("0.01")


def can_transition(current: str, new: str) -> bool:
    return new in VALID_STATUS_TRANSITIONS.get(current, set())


def _stripe_payment(order: Order) -> Optional[Payment]:
    return next(
        (
            p for p in order.payments
            if p.method == "STRIPE" and p.status == PaymentStatus.COMPLETED.value and p.external_id
        ),
        None,
    )


class OrderService:
    """Order lifecycle operations for one session."""

    def __init__(
        self,
        session: AsyncSession,
        stripe: Optional[StripeClient] = None,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self.session = session
        self.orders = OrderRepository(session)
        self.inventory = InventoryService(session)
        self.stripe = stripe or stripe_client
        self.notifications = notifications or notification_service

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def generate_order_number(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        start = datetime(now.year, 1, 1, tzinfo=timezone.utc)
        end = datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
        sequence = await self.orders.count_created_in_year(start, end) + 1
        number = f"ORD-{now.year}-{sequence:06d}"
        while await self.orders.order_number_exists(number):
            sequence += 1
            number = f"ORD-{now.year}-{sequence:06d}"
        return number

    async def create_order_from_cart(
        self,
        *,
        lines: list[Any],
        payment_intent: dict[str, Any],
        shipping_address: dict[str, Any],
        order_email: str,
        user_id: Optional[str] = None,
        billing_address: Optional[dict[str, Any]] = None,
    ) -> tuple[Order, CartCalculation]:
        """
        Create a PAID order from priced cart lines and a succeeded payment.

        The stored total is recomputed from catalog prices; a mismatch with
        the amount charged is logged, not rejected.
        """
        metadata = payment_intent.get("metadata") or {}
        currency = str(payment_intent.get("currency", "")).upper()
        language = resolve_language(metadata.get("locale"))

        calculation = calculate_cart(lines, currency, language.value)
        if not calculation.items:
            raise validation_error("Cannot create an order without priced items")

        shipping_amount = round_half_even(to_decimal(metadata.get("shipping_cost") or "0"))
        tax_amount = Decimal("0.00")
        discount_amount = Decimal("0.00")
        total_amount = round_half_even(calculation.subtotal + shipping_amount + tax_amount - discount_amount)

        charged_cents = payment_intent.get("amount_received") or payment_intent.get("amount") or 0
        charged = from_minor_units(int(charged_cents), currency)
        if abs(charged - total_amount) > AMOUNT_TOLERANCE:
            logger.warning(
                "Charged amount differs from computed total",
                payment_intent_id=payment_intent.get("id"),
                charged=str(charged),
                computed=str(total_amount),
            )

        now = datetime.now(timezone.utc)
        order = Order(
            order_number=await self.generate_order_number(now),
            user_id=user_id,
            order_email=order_email,
            status=OrderStatus.PAID.value,
            currency=currency,
            subtotal_amount=calculation.subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total_amount=total_amount,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            language=language.value,
            utm_source=metadata.get("utm_source") or None,
            items=[
                OrderItem(
                    variant_id=item.variant_id,
                    product_id=item.product_id,
                    product_snapshot={"name": item.product_name, "sku": item.sku, "image": item.image},
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.line_total,
                    currency=item.currency,
                )
                for item in calculation.items
            ],
            payments=[
                Payment(
                    amount=charged,
                    currency=currency,
                    method="STRIPE",
                    external_id=payment_intent.get("id"),
                    status=PaymentStatus.COMPLETED.value,
                    transaction_data={
                        "receipt_email": payment_intent.get("receipt_email") or order_email,
                        "payment_method": payment_intent.get("payment_method"),
                        "metadata": metadata,
                    },
                    processed_at=now,
                )
            ],
            shipments=[],
            status_history=[
                OrderStatusHistory(status=OrderStatus.PAID.value, comment="Payment received", created_by="SYSTEM")
            ],
        )
        self.session.add(order)
        await self.session.flush()

        await self.inventory.decrement_stock(
            [StockLine(variant_id=item.variant_id, quantity=item.quantity) for item in calculation.items]
        )

        logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            total=str(total_amount),
            currency=currency,
        )
        return await self.orders.get_fresh(order.id), calculation

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_order_admin(self, order_id: str) -> Order:
        order = await self.orders.get_fresh(order_id)
        if order is None:
            raise not_found("Order not found")
        return order

    async def get_order_for_user(self, id_or_number: str, user_id: str) -> Order:
        order = await self.orders.get_by_id_or_number(id_or_number)
        if order is None:
            raise not_found("Order not found")
        if order.user_id != user_id:
            raise forbidden("Order not found or access denied")
        return order

    async def list_user_orders(self, user_id: str) -> list[Order]:
        return await self.orders.list_for_user(user_id)

    async def list_orders_admin(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        page = max(page, 1)
        return await self.orders.list_orders(
            status=status,
            search=search,
            skip=(page - 1) * limit,
            limit=limit,
        )

    async def verify_order(self, payment_intent_id: str, user_id: Optional[str] = None) -> Order:
        """Find the order created for a payment intent (checkout success page)."""
        payment = await self.orders.get_payment_by_external_id(payment_intent_id)
        if payment is None:
            raise not_found("Order not found for this payment")
        order = await self.get_order_admin(payment.order_id)
        if order.user_id and user_id and order.user_id != user_id:
            raise forbidden("Order not found or access denied")
        return order

    # ------------------------------------------------------------------
    # Status workflow
    # ------------------------------------------------------------------

    async def _refund_payment(self, order: Order) -> None:
        payment = _stripe_payment(order)
        if payment is None:
            logger.warning("No completed Stripe payment to refund", order_id=order.id)
            return
        try:
            refund = await self.stripe.create_refund(payment_intent=payment.external_id)
            logger.info("Stripe refund created", order_id=order.id, refund_id=refund.get("id"))
        except StripeAPIError as e:
            if e.code == "charge_already_refunded":
                logger.warning("Charge already refunded", order_id=order.id)
            else:
                logger.error("Stripe refund failed", order_id=order.id, error=str(e))
                raise AppError(ErrorCode.PAYMENT_FAILED, f"Stripe refund failed: {e}", 502)
        payment.status = PaymentStatus.REFUNDED.value

    async def update_order_status(
        self,
        order_id: str,
        new_status: str,
        *,
        comment: Optional[str] = None,
        created_by: Optional[str] = None,
        send_email: bool = True,
    ) -> Order:
        """
        Move an order to ``new_status``.

        Refunding statuses refund the Stripe payment first; a failed refund
        leaves the order untouched.
        """
        order = await self.orders.get_fresh(order_id)
        if order is None:
            raise not_found("Order not found")

        try:
            new_status = OrderStatus(new_status).value
        except ValueError:
            raise validation_error(f"Unknown order status: {new_status}")

        if not can_transition(order.status, new_status):
            raise validation_error(
                f"Invalid status transition from {order.status} to {new_status}",
                {"from": order.status, "to": new_status},
            )

        if new_status in REFUNDING_STATUSES:
            await self._refund_payment(order)
            await self.inventory.increment_stock(
                [
                    StockLine(variant_id=item.variant_id, quantity=item.quantity)
                    for item in order.items
                    if item.variant_id
                ]
            )

        previous = order.status
        order.status = new_status
        order.status_history.append(
            OrderStatusHistory(status=new_status, comment=comment, created_by=created_by)
        )

        now = datetime.now(timezone.utc)
        if new_status == OrderStatus.SHIPPED.value:
            for shipment in order.shipments:
                if shipment.carrier_service == "RETURN" or shipment.shipped_at is not None:
                    continue
                shipment.shipped_at = now
                if shipment.delivered_at is None:
                    shipment.status = "SHIPPED"
        elif new_status == OrderStatus.DELIVERED.value:
            for shipment in order.shipments:
                if shipment.carrier_service != "RETURN" and shipment.delivered_at is None:
                    shipment.delivered_at = now
                    shipment.status = "DELIVERED"

        await self.session.flush()
        logger.info(
            "Order status updated",
            order_id=order.id,
            previous=previous,
            status=new_status,
            created_by=created_by,
        )

        if send_email and new_status in EMAIL_STATUSES:
            try:
                await self.notifications.send_status_change_email(order, new_status)
            except Exception as e:
                logger.error("Status email failed", order_id=order.id, error=str(e))

        return await self.orders.get_fresh(order.id)

    async def process_refund(
        self,
        order_id: str,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        """Full or partial Stripe refund without changing the order status."""
        order = await self.get_order_admin(order_id)
        payment = _stripe_payment(order)
        if payment is None:
            raise not_found("No Stripe payment found for this order")

        cents = to_minor_units(round_half_even(amount), order.currency) if amount is not None else None
        processed_at = datetime.now(timezone.utc).isoformat()
        try:
            refund = await self.stripe.create_refund(
                payment_intent=payment.external_id,
                amount=cents,
                reason=reason,
            )
        except StripeAPIError as e:
            logger.error("Refund processing failed", order_id=order_id, error=str(e))
            raise AppError(
                ErrorCode.PAYMENT_FAILED,
                f"Stripe refund failed: {e}",
                502,
                details={"failureReason": str(e)},
            )

        refunded = from_minor_units(int(refund.get("amount", cents or 0)), order.currency)
        logger.info("Refund processed", order_id=order_id, refund_id=refund.get("id"), amount=str(refunded))
        return {
            "success": True,
            "refund_id": refund.get("id"),
            "amount": float(refunded),
            "currency": str(refund.get("currency", order.currency)).upper(),
            "status": refund.get("status"),
            "processed_at": processed_at,
        }

    async def request_refund(
        self,
        *,
        order_id: str,
        user_id: str,
        reason: str,
        request_type: Optional[str] = None,
    ) -> Order:
        """Customer-initiated cancellation or refund request."""
        if not order_id or not reason:
            raise AppError(ErrorCode.INVALID_INPUT, "orderId and reason are required", 400)

        order = await self.orders.get_by_id_or_number(order_id)
        if order is None or order.user_id != user_id:
            raise forbidden("Order not found or access denied")

        if request_type == "CANCELLATION":
            updated = await self.update_order_status(
                order.id,
                OrderStatus.CANCELLED.value,
                comment="Annulation immédiate par le client.",
                created_by=user_id,
            )
        else:
            updated = await self.update_order_status(
                order.id,
                OrderStatus.REFUND_REQUESTED.value,
                comment=f"Remboursement demandé : {reason[:500]}",
                created_by=user_id,
            )

        try:
            await self.notifications.send_refund_request_alert(updated, reason, request_type or "REFUND")
        except Exception as e:
            logger.error("Refund request alert failed", order_id=order.id, error=str(e))

        return updated
