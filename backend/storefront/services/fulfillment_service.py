"""
Fulfillment service - shipping labels, return labels and carrier tracking.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import AppError, ErrorCode, not_found
from storefront.core.logging import get_logger
from storefront.models.order import Order, OrderStatus, Shipment, ShipmentStatus
from storefront.repositories.order import OrderRepository
from storefront.services.email_templates import tracking_url
from storefront.services.notification_service import NotificationService, notification_service
from storefront.services.order_service import OrderService
from storefront.services.shipping_service import DISTANCE_UNIT, MASS_UNIT, ShippingService
from storefront.services.shippo_client import ShippoAPIError, ShippoClient, shippo_client

logger = get_logger(__name__)

RETURN_SERVICE = "RETURN"


def _order_items_payload(order: Order) -> list[dict[str, Any]]:
    return [
        {"variant_id": item.variant_id, "quantity": item.quantity}
        for item in order.items
        if item.variant_id
    ]


def _order_destination(order: Order) -> dict[str, Any]:
    address = dict(order.shipping_address or {})
    address.setdefault("email", order.order_email or "")
    return address


def _rate_id(rate: dict[str, Any]) -> Optional[str]:
    return rate.get("object_id") or rate.get("objectId")


def _transaction_error(transaction: dict[str, Any]) -> str:
    messages = transaction.get("messages") or []
    if messages and isinstance(messages[0], dict):
        return messages[0].get("text") or "Unknown error"
    return "Unknown error"


class FulfillmentService:
    """Label purchase and delivery tracking for paid orders."""

    def __init__(
        self,
        session: AsyncSession,
        shippo: Optional[ShippoClient] = None,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self.session = session
        self.shippo = shippo or shippo_client
        self.notifications = notifications or notification_service
        self.orders = OrderRepository(session)
        self.shipping = ShippingService(session, self.shippo)

    async def _get_order(self, order_id: str) -> Order:
        order = await self.orders.get_fresh(order_id)
        if order is None:
            raise not_found("Order not found")
        return order

    async def preview_shipping_rates(self, order_id: str) -> list[dict[str, Any]]:
        order = await self._get_order(order_id)
        rates = await self.shipping.get_shipping_rates(
            address_to=_order_destination(order),
            items=_order_items_payload(order),
        )
        if not rates:
            raise AppError(ErrorCode.SHIPPING_NOT_AVAILABLE, "No shipping rates found", 404)
        return rates

    async def _buy(self, rate_id: str) -> dict[str, Any]:
        try:
            transaction = await self.shippo.create_transaction(rate_id)
        except ShippoAPIError as e:
            raise AppError(ErrorCode.EXTERNAL_SERVICE_ERROR, f"Failed to purchase label: {e}", 502)

        if transaction.get("status") != "SUCCESS":
            logger.error("Label transaction failed", rate_id=rate_id, messages=transaction.get("messages"))
            raise AppError(
                ErrorCode.EXTERNAL_SERVICE_ERROR,
                f"Failed to purchase label: {_transaction_error(transaction)}",
                502,
            )
        return transaction

    async def purchase_shipping_label(self, order_id: str, rate_id: Optional[str] = None) -> dict[str, Any]:
        """
        Buy the outbound label for an order.

        Without a rate id the rates are recomputed and the cheapest one is
        bought. The order status is left unchanged.
        """
        order = await self._get_order(order_id)
        if any(s.tracking_code and s.carrier_service != RETURN_SERVICE for s in order.shipments):
            raise AppError(ErrorCode.CONFLICT, "Label already exists", 409)

        if not rate_id:
            logger.info("No shipping rate provided, recalculating", order_id=order_id)
            rates = await self.shipping.get_shipping_rates(
                address_to=_order_destination(order),
                items=_order_items_payload(order),
            )
            if not rates:
                raise AppError(ErrorCode.SHIPPING_NOT_AVAILABLE, "Could not calculate new shipping rates", 404)
            rate_id = _rate_id(rates[0])
            if not rate_id:
                raise AppError(ErrorCode.SHIPPING_RATE_ERROR, "Rate ID missing and recalculation failed", 502)

        transaction = await self._buy(rate_id)
        tracking_number = transaction.get("tracking_number")
        rate = transaction.get("rate")
        carrier = rate.get("provider") if isinstance(rate, dict) else transaction.get("provider")

        shipment = Shipment(
            order_id=order.id,
            carrier=carrier or "Shippo",
            tracking_code=tracking_number,
            tracking_url=transaction.get("tracking_url_provider") or (
                tracking_url(tracking_number) if tracking_number else None
            ),
            label_url=transaction.get("label_url"),
            status=ShipmentStatus.PENDING.value,
            shippo_rate_id=rate_id,
            shippo_transaction_id=transaction.get("object_id"),
        )
        self.session.add(shipment)
        await self.session.flush()

        logger.info("Shipping label purchased", order_id=order_id, tracking_number=tracking_number)
        return {
            "success": True,
            "tracking_number": tracking_number,
            "label_url": shipment.label_url,
            "shipment_id": shipment.id,
            "carrier": shipment.carrier,
        }

    def _warehouse_address(self, order: Order) -> dict[str, str]:
        origin = None
        for item in order.items:
            if item.variant is not None and item.variant.product is not None:
                origin = item.variant.product.shipping_origin
                break

        if origin is not None and origin.is_active and isinstance(origin.address, dict):
            address = {**settings.store_origin_address, **origin.address, "name": origin.name}
        else:
            address = settings.store_origin_address

        if not address.get("street1") or not address.get("city") or not address.get("zip"):
            raise AppError(
                ErrorCode.SHIPPING_DATA_MISSING,
                "Logistics configuration missing: no valid origin address could be resolved.",
                400,
            )
        return {k: str(v) if v is not None else "" for k, v in address.items()}

    def _return_customs(self, order: Order, customer: dict[str, str]) -> Optional[dict[str, Any]]:
        if customer["country"] == settings.store_origin_country:
            return None

        items = []
        for item in order.items:
            variant = item.variant
            product = variant.product if variant else None
            description = (
                product.display_name(order.language, product.slug)
                if product
                else (item.product_snapshot or {}).get("name", "Item")
            )
            weight = variant.effective_weight if variant else None
            items.append(
                {
                    "description": description,
                    "quantity": item.quantity,
                    "net_weight": str(weight or 0),
                    "mass_unit": MASS_UNIT,
                    "value_amount": str(item.unit_price),
                    "value_currency": order.currency,
                    "origin_country": (product.origin_country if product else None) or settings.store_origin_country,
                }
            )

        return {
            "contents_type": "RETURN_MERCHANDISE",
            "contents_explanation": "Customer return",
            "non_delivery_option": "RETURN",
            "certify": True,
            "certify_signer": customer["name"],
            "items": items,
        }

    async def create_return_label(self, order_id: str, preview: bool = False) -> dict[str, Any]:
        """Quote or buy a prepaid customer-to-warehouse return label."""
        order = await self._get_order(order_id)

        if not order.order_email:
            raise AppError(
                ErrorCode.SHIPPING_DATA_MISSING,
                "Transaction email (orderEmail) is missing. Cannot generate label.",
                400,
            )

        addr = order.shipping_address or {}
        customer = {
            "name": addr.get("name") or f"{addr.get('firstName', '')} {addr.get('lastName', '')}".strip(),
            "street1": addr.get("street1") or addr.get("line1") or "",
            "street2": addr.get("street2") or addr.get("line2") or "",
            "city": addr.get("city") or "",
            "state": addr.get("state") or "",
            "zip": "".join(str(addr.get("zip") or addr.get("postalCode") or addr.get("postal_code") or "").split()),
            "country": str(addr.get("country") or "").upper(),
            "phone": addr.get("phone") or "",
            "email": order.order_email,
        }
        warehouse = self._warehouse_address(order)

        weight = Decimal("0")
        for item in order.items:
            unit_weight = item.variant.effective_weight if item.variant else None
            if not unit_weight or unit_weight <= 0:
                raise AppError(
                    ErrorCode.SHIPPING_DATA_MISSING,
                    f"Missing or invalid weight for item {item.id}. Cannot generate return label.",
                    400,
                )
            weight += unit_weight * item.quantity

        first = order.items[0] if order.items else None
        dims = (first.variant.effective_dimensions if first and first.variant else None) or {}
        if not dims.get("length") or not dims.get("width") or not dims.get("height"):
            raise AppError(
                ErrorCode.SHIPPING_DATA_MISSING,
                "Missing or invalid dimensions. Cannot generate return label.",
                400,
            )

        parcels = [
            {
                "length": str(dims["length"]),
                "width": str(dims["width"]),
                "height": str(dims["height"]),
                "distance_unit": DISTANCE_UNIT,
                "weight": f"{weight:.2f}",
                "mass_unit": MASS_UNIT,
            }
        ]
        customs = self._return_customs(order, customer)

        try:
            rates = await self.shippo.get_return_rates(customer, warehouse, parcels, customs)
        except ShippoAPIError as e:
            raise AppError(ErrorCode.EXTERNAL_SERVICE_ERROR, f"Return rate request failed: {e}", 502)
        if not rates:
            raise AppError(ErrorCode.SHIPPING_NOT_AVAILABLE, "No return rates found", 404)

        best = min(rates, key=lambda r: Decimal(str(r.get("amount", "0"))))
        if preview:
            return {
                "isPreview": True,
                "amount": best.get("amount"),
                "currency": best.get("currency"),
                "provider": best.get("provider"),
            }

        transaction = await self._buy(_rate_id(best))
        shipment = Shipment(
            order_id=order.id,
            carrier=transaction.get("provider") or best.get("provider"),
            carrier_service=RETURN_SERVICE,
            tracking_code=transaction.get("tracking_number"),
            label_url=transaction.get("label_url"),
            status=ShipmentStatus.PENDING.value,
            shippo_rate_id=_rate_id(best),
            shippo_transaction_id=transaction.get("object_id"),
        )
        self.session.add(shipment)
        await self.session.flush()

        if shipment.label_url:
            sent = await self.notifications.send_return_label(order, shipment.label_url, shipment.tracking_code)
            if not sent:
                logger.error("Failed to send return label email", order_id=order_id)
        else:
            logger.error("Return label purchased without a label URL", order_id=order_id)

        logger.info("Return label created", order_id=order_id, tracking_number=shipment.tracking_code)
        return {
            "isPreview": False,
            "trackingNumber": shipment.tracking_code,
            "labelUrl": shipment.label_url,
            "carrier": shipment.carrier,
            "amount": best.get("amount"),
            "currency": best.get("currency"),
        }

    async def handle_tracking_update(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a carrier ``track_updated`` event."""
        event = payload.get("event")
        data = payload.get("data") or {}

        if event != "track_updated":
            logger.info("Carrier event ignored", carrier_event=event)
            return {"received": True}

        tracking_number = data.get("tracking_number")
        if not tracking_number:
            raise AppError(ErrorCode.VALIDATION_ERROR, "No tracking number found", 400)

        status = (data.get("tracking_status") or {}).get("status")
        shipment = await self.orders.get_shipment_by_tracking(tracking_number)
        if shipment is None:
            logger.warning("Tracking update for unknown shipment", tracking_number=tracking_number)
            return {"received": True, "status": "skipped_not_found"}

        if status != "DELIVERED":
            if status == "TRANSIT" and shipment.status == ShipmentStatus.PENDING.value:
                shipment.status = ShipmentStatus.IN_TRANSIT.value
                shipment.shipped_at = shipment.shipped_at or datetime.now(timezone.utc)
                await self.session.flush()
            logger.info("Tracking status not handled for order update", status=status)
            return {"received": True}

        if shipment.carrier_service == RETURN_SERVICE:
            shipment.status = ShipmentStatus.DELIVERED.value
            shipment.delivered_at = datetime.now(timezone.utc)
            await self.session.flush()
            logger.info("Return parcel delivered", order_id=shipment.order_id)
            return {"received": True, "status": "updated_return_delivered"}

        order = await self.orders.get_fresh(shipment.order_id)
        if order.status == OrderStatus.DELIVERED.value:
            logger.info("Order already delivered, skipping update", order_id=order.id)
            return {"received": True, "status": "skipped_already_delivered"}

        shipment.status = ShipmentStatus.DELIVERED.value
        shipment.delivered_at = datetime.now(timezone.utc)
        await self.session.flush()

        if order.status not in (OrderStatus.PAID.value, OrderStatus.SHIPPED.value, OrderStatus.IN_TRANSIT.value):
            logger.warning("Delivery ignored for order status", order_id=order.id, status=order.status)
            return {"received": True, "status": "skipped_invalid_status"}

        orders = OrderService(self.session, notifications=self.notifications)
        if order.status == OrderStatus.PAID.value:
            await orders.update_order_status(
                order.id,
                OrderStatus.SHIPPED.value,
                comment="Shippo Webhook: In transit",
                created_by="SYSTEM",
                send_email=False,
            )
        await orders.update_order_status(
            order.id,
            OrderStatus.DELIVERED.value,
            comment="Shippo Webhook: Delivered",
            created_by="SYSTEM",
        )
        logger.info("Order marked delivered by carrier", order_id=order.id, tracking_number=tracking_number)
        return {"received": True, "status": "updated_delivered"}
