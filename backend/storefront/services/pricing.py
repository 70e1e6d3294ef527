"""
Money helpers and cart calculation.

All arithmetic is done on Decimal with banker's rounding; minor units
(cents) are only used at the payment processor boundary.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from typing import Any, Optional

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.models.cart import Cart
from storefront.models.catalog import ProductPricing, ProductStatus, ProductVariant

logger = get_logger(__name__)

SUPPORTED_CURRENCIES: dict[str, dict[str, Any]] = {
    "CAD": {"symbol": "$", "decimals": 2},
    "USD": {"symbol": "$", "decimals": 2},
    "EUR": {"symbol": "€", "decimals": 2},
}

EXCHANGE_RATES: dict[tuple[str, str], Decimal] = {
    ("CAD", "USD"): Decimal("0.74"),
    ("USD", "CAD"): Decimal("1.35"),
    ("EUR", "CAD"): Decimal("1.48"),
    ("CAD", "EUR"): Decimal("0.68"),
    ("USD", "EUR"): Decimal("0.92"),
    ("EUR", "USD"): Decimal("1.09"),
}


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_even(value: Any, places: int = 2) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_EVEN)


def currency_decimals(currency: str) -> int:
    return SUPPORTED_CURRENCIES.get(currency.upper(), {"decimals": 2})["decimals"]


def to_minor_units(amount: Any, currency: str) -> int:
    """Convert an amount to the processor's integer minor units (cents)."""
    factor = Decimal(10) ** currency_decimals(currency)
    return int((to_decimal(amount) * factor).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> Decimal:
    factor = Decimal(10) ** currency_decimals(currency)
    return round_half_even(Decimal(amount) / factor, currency_decimals(currency))


def convert_currency(amount: Any, from_currency: str, to_currency: str) -> Decimal:
    """Convert between supported currencies with the configured rates."""
    source, target = from_currency.upper(), to_currency.upper()
    if source == target:
        return to_decimal(amount)
    rate = EXCHANGE_RATES.get((source, target))
    if rate is None:
        raise ValueError(f"CONVERSION_ERROR: no exchange rate for {source}->{target}")
    return round_half_even(to_decimal(amount) * rate)


def format_price(
    amount: Any,
    currency: str,
    locale: str = "fr",
    show_code: bool = False,
) -> str:
    """Render an amount for display, e.g. ``$10.50`` (en) or ``10,50 $`` (fr)."""
    currency = currency.upper()
    symbol = SUPPORTED_CURRENCIES.get(currency, {"symbol": currency})["symbol"]
    value = round_half_even(amount, currency_decimals(currency))
    text = f"{value:,.{currency_decimals(currency)}f}"
    if locale.lower().startswith("fr"):
        text = text.replace(",", " ").replace(".", ",")
        rendered = f"{text} {symbol}"
    else:
        rendered = f"{symbol}{text}"
    return f"{rendered} {currency}" if show_code else rendered


def get_price(pricing: list[ProductPricing], currency: str) -> Optional[Decimal]:
    """Active base price in exactly ``currency``; no conversion fallback."""
    for entry in pricing:
        if entry.is_active and entry.price_type == "base" and entry.currency == currency:
            return to_decimal(entry.price)
    return None


def get_price_for_currency(pricing: list[ProductPricing], currency: str) -> Decimal:
    price = get_price(pricing, currency)
    if price is None:
        raise ValueError(f"PRICING_ERROR: no price in {currency}")
    return price


@dataclass
class CalculatedItem:
    cart_item_id: Optional[str]
    variant_id: str
    sku: str
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    currency: str
    product_id: Optional[str] = None
    image: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cartItemId": self.cart_item_id,
            "variantId": self.variant_id,
            "productId": self.product_id,
            "sku": self.sku,
            "productName": self.product_name,
            "image": self.image,
            "quantity": self.quantity,
            "unitPrice": float(self.unit_price),
            "lineTotal": float(self.line_total),
            "currency": self.currency,
        }


@dataclass
class CartCalculation:
    currency: str
    items: list[CalculatedItem] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    item_count: int = 0
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "currency": self.currency,
            "items": [item.to_dict() for item in self.items],
            "subtotal": float(self.subtotal),
            "itemCount": self.item_count,
            "calculatedAt": self.calculated_at.isoformat(),
        }


@dataclass
class CartLine:
    """Minimal line used for carts that only exist in memory (webhook orders)."""

    variant: ProductVariant
    quantity: int
    id: Optional[str] = None

    @property
    def variant_id(self) -> str:
        return self.variant.id


def calculate_cart(
    cart: Cart | list[Any],
    currency: Optional[str] = None,
    language: str = "FR",
) -> CartCalculation:
    """
    Price every line of a cart in a single currency.

    Lines without a price in that currency are skipped and logged.
    """
    lines = cart.items if isinstance(cart, Cart) else cart
    currency = (currency or (cart.currency if isinstance(cart, Cart) else settings.site_currency)).upper()

    calculation = CartCalculation(currency=currency)
    subtotal = Decimal("0")

    for line in lines:
        variant = line.variant
        unit_price = get_price(variant.pricing, currency)
        if unit_price is None:
            logger.error(
                "No price for cart line, skipping",
                variant_id=variant.id,
                sku=variant.sku,
                currency=currency,
            )
            continue

        line_total = round_half_even(unit_price * line.quantity)
        product = variant.product
        calculation.items.append(
            CalculatedItem(
                cart_item_id=getattr(line, "id", None),
                variant_id=variant.id,
                product_id=product.id if product else None,
                sku=variant.sku,
                product_name=product.display_name(language, variant.sku) if product else variant.sku,
                image=product.primary_image if product else None,
                quantity=line.quantity,
                unit_price=unit_price,
                line_total=line_total,
                currency=currency,
            )
        )
        subtotal += line_total
        calculation.item_count += line.quantity

    calculation.subtotal = round_half_even(subtotal)
    return calculation


def validate_cart_for_checkout(cart: Cart, currency: Optional[str] = None) -> tuple[bool, list[str]]:
    """Check a cart can be paid for: not empty, priced and in stock."""
    currency = (currency or cart.currency).upper()
    errors: list[str] = []

    if not cart.items:
        return False, ["Cart is empty"]

    for item in cart.items:
        variant = item.variant
        if variant.product is None or variant.product.status != ProductStatus.ACTIVE.value:
            errors.append(f"Product {variant.sku} is no longer available")
            continue

        if get_price(variant.pricing, currency) is None:
            errors.append(f"No price available for {variant.sku} in {currency}")

        inventory = variant.inventory
        if inventory and inventory.track_inventory and not inventory.allow_backorder:
            available = inventory.available_stock
            if available < item.quantity:
                errors.append(
                    f"Insufficient stock for {variant.sku}: {available} available, {item.quantity} requested"
                )

    return not errors, errors
