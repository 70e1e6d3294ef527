"""
Checkout service - Stripe payment intent creation and shipping updates.
"""
import json
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import AppError, ErrorCode, not_found, validation_error
from storefront.core.logging import get_logger
from storefront.models.user import User
from storefront.repositories.cart import CartRepository
from storefront.repositories.product import VariantRepository
from storefront.services.inventory_service import InventoryService, StockLine
from storefront.services.pricing import from_minor_units, get_price, to_decimal, to_minor_units
from storefront.services.stripe_client import StripeAPIError, StripeClient, stripe_client

logger = get_logger(__name__)


def _fallback_currency(currency: str) -> str:
    return "USD" if currency == "CAD" else "CAD"


class CheckoutService:
    """Builds and updates the payment intent that backs the checkout page."""

    def __init__(self, session: AsyncSession, stripe: Optional[StripeClient] = None) -> None:
        self.session = session
        self.stripe = stripe or stripe_client
        self.carts = CartRepository(session)
        self.variants = VariantRepository(session)
        self.inventory = InventoryService(session)

    async def _resolve_items(
        self,
        cart_id: Optional[str],
        direct_item: Optional[dict[str, Any]],
        user: Optional[User],
        anonymous_id: Optional[str],
    ) -> list[dict[str, Any]]:
        if direct_item:
            return [{"variantId": direct_item["variant_id"], "quantity": int(direct_item["quantity"])}]

        if not cart_id:
            raise validation_error("Either cartId or directItem is required")

        cart = await self.carts.get_fresh(cart_id)
        if cart is None:
            raise not_found("Cart not found")
        owner_ok = (user is not None and cart.user_id == user.id) or (
            cart.user_id is None and anonymous_id is not None and cart.anonymous_id == anonymous_id
        )
        if not owner_ok:
            raise AppError(ErrorCode.FORBIDDEN, "Cart does not belong to the current visitor", 403)
        if not cart.items:
            raise validation_error("Cart is empty")
        return [{"variantId": item.variant_id, "quantity": item.quantity} for item in cart.items]

    async def create_payment_intent(
        self,
        *,
        cart_id: Optional[str] = None,
        direct_item: Optional[dict[str, Any]] = None,
        currency: Optional[str] = None,
        user: Optional[User] = None,
        anonymous_id: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> dict[str, Any]:
        items = await self._resolve_items(cart_id, direct_item, user, anonymous_id)
        currency = (currency or settings.site_currency).upper()

        variant_ids = [item["variantId"] for item in items]
        variants = {v.id: v for v in await self.variants.get_many_active(variant_ids)}
        if len(variants) != len(set(variant_ids)):
            raise not_found("Some products were not found or are no longer available")

        total = Decimal("0")
        for item in items:
            variant = variants[item["variantId"]]
            price = get_price(variant.pricing, currency)
            if price is None:
                price = get_price(variant.pricing, _fallback_currency(currency))
            if price is None:
                raise not_found(f"Price not found for variant {variant.sku}")
            total += price * item["quantity"]

        await self.inventory.reserve_stock(
            [StockLine(variant_id=i["variantId"], quantity=i["quantity"]) for i in items]
        )

        amount = to_minor_units(total, currency)
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "automatic_payment_methods": {"enabled": True},
            "receipt_email": user.email if user else None,
            "metadata": {
                "userId": user.id if user else "",
                "cartId": cart_id or "",
                "anonymousId": anonymous_id or "",
                "items": json.dumps(items),
                "integration_check": "accept_a_payment",
                "subtotal": str(amount),
                "locale": (locale or settings.default_locale).lower(),
            },
        }

        logger.info(
            "Creating payment intent",
            currency=currency,
            amount=str(total),
            user_id=user.id if user else "anonymous",
        )
        try:
            intent = await self.stripe.create_payment_intent(params)
        except StripeAPIError as e:
            await self.inventory.release_stock(
                [StockLine(variant_id=i["variantId"], quantity=i["quantity"]) for i in items]
            )
            raise AppError(ErrorCode.PAYMENT_FAILED, f"Failed to create payment intent: {e}", 502)

        logger.info("Payment intent created", payment_intent_id=intent["id"], amount=amount)
        return {
            "client_secret": intent.get("client_secret"),
            "payment_intent_id": intent["id"],
            "amount": float(total),
            "currency": currency,
            "status": intent.get("status"),
        }

    async def update_payment_intent(
        self,
        payment_intent_id: str,
        *,
        shipping_amount: Decimal,
        shipping_rate_id: Optional[str] = None,
        shipping_details: Optional[dict[str, Any]] = None,
        currency: Optional[str] = None,
    ) -> dict[str, Any]:
        """Add the chosen shipping rate (and address) to the intent total."""
        try:
            intent = await self.stripe.retrieve_payment_intent(payment_intent_id)
        except StripeAPIError as e:
            raise AppError(ErrorCode.PAYMENT_FAILED, f"Failed to retrieve payment intent: {e}", 502)

        resolved_currency = (currency or intent.get("currency", settings.site_currency)).upper()
        metadata = dict(intent.get("metadata") or {})

        if metadata.get("subtotal"):
            subtotal = int(metadata["subtotal"])
        else:
            previous_shipping = to_decimal(metadata.get("shipping_cost") or "0")
            subtotal = int(intent["amount"]) - to_minor_units(previous_shipping, resolved_currency)

        shipping_cents = to_minor_units(shipping_amount, resolved_currency)
        new_total = subtotal + shipping_cents

        metadata.update(
            {
                "shipping_cost": str(shipping_amount),
                "subtotal": str(subtotal),
            }
        )
        if shipping_rate_id:
            metadata["shipping_rate_id"] = shipping_rate_id

        payload: dict[str, Any] = {"amount": new_total, "metadata": metadata}
        if shipping_details:
            payload["shipping"] = {
                "name": shipping_details["name"],
                "phone": shipping_details.get("phone"),
                "address": {
                    "line1": shipping_details["street1"],
                    "line2": shipping_details.get("street2") or None,
                    "city": shipping_details["city"],
                    "state": shipping_details.get("state"),
                    "postal_code": shipping_details["zip"],
                    "country": shipping_details["country"],
                },
            }
            if shipping_details.get("email"):
                payload["receipt_email"] = shipping_details["email"]

        logger.info("Updating payment intent", payment_intent_id=payment_intent_id, amount=new_total)

        try:
            if settings.stripe_automatic_tax:
                try:
                    updated = await self.stripe.update_payment_intent(
                        payment_intent_id,
                        {**payload, "automatic_tax": {"enabled": True}},
                    )
                except StripeAPIError as tax_error:
                    logger.warning("Stripe Tax activation failed, falling back", error=str(tax_error))
                    updated = await self.stripe.update_payment_intent(payment_intent_id, payload)
            else:
                updated = await self.stripe.update_payment_intent(payment_intent_id, payload)
        except StripeAPIError as e:
            raise AppError(
                ErrorCode.PAYMENT_FAILED,
                "Failed to update payment intent",
                502,
                {"originalError": str(e)},
            )

        return {
            "payment_intent_id": updated["id"],
            "amount": float(from_minor_units(int(updated["amount"]), resolved_currency)),
            "currency": resolved_currency,
            "status": updated.get("status"),
            "client_secret": updated.get("client_secret"),
        }
