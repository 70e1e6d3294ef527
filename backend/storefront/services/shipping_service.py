"""
Shipping service - address normalisation, parcel packing, customs and rates.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from py3dbp import Bin, Item, Packer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import AppError, ErrorCode, not_found
from storefront.core.logging import get_logger
from storefront.models.catalog import ProductVariant
from storefront.repositories.cart import CartRepository
from storefront.repositories.product import VariantRepository
from storefront.services.pricing import CartLine, convert_currency, round_half_even
from storefront.services.shippo_client import ShippoAPIError, ShippoClient, shippo_client

logger = get_logger(__name__)

DISTANCE_UNIT = "cm"
MASS_UNIT = "kg"

# Countries whose addresses need a state / province
REGIONAL_MARKETS = {"CA", "US"}

SHIPPING_BOX_CATALOG: list[dict[str, Any]] = [
    {"id": "box-xs", "name": "Extra small", "length": 20, "width": 15, "height": 5, "max_weight": 1},
    {"id": "box-s", "name": "Small", "length": 25, "width": 20, "height": 10, "max_weight": 3},
    {"id": "box-m", "name": "Medium", "length": 35, "width": 25, "height": 15, "max_weight": 8},
    {"id": "box-l", "name": "Large", "length": 45, "width": 35, "height": 25, "max_weight": 15},
    {"id": "box-xl", "name": "Extra large", "length": 60, "width": 40, "height": 40, "max_weight": 25},
]

SHIPPING_STRATEGIES = {
    "STANDARD": {
        "label": "Standard",
        "keywords": ["standard", "ground", "regular", "economy"],
        "excludes": ["express", "priority"],
    },
    "EXPRESS": {
        "label": "Express",
        "keywords": ["express", "priority", "expedited", "overnight"],
        "excludes": [],
    },
}


def _missing(message: str) -> AppError:
    return AppError(ErrorCode.SHIPPING_DATA_MISSING, message, 400)


def validate_address(data: Any, source: str) -> dict[str, str]:
    """
    Normalise an address coming from a form, Stripe or the database.

    Returns Shippo's address shape. Raises SHIPPING_DATA_MISSING naming the
    first missing field.
    """
    if not data or not isinstance(data, dict):
        raise _missing(f"Invalid address data from {source}")

    normalized = dict(data)
    if not normalized.get("zip"):
        normalized["zip"] = data.get("zipCode") or data.get("postalCode") or data.get("postal_code")
    if not normalized.get("street1"):
        normalized["street1"] = data.get("line1")
    if not normalized.get("street2"):
        normalized["street2"] = data.get("line2")
    if not normalized.get("name") and (data.get("firstName") or data.get("lastName")):
        normalized["name"] = f"{data.get('firstName') or ''} {data.get('lastName') or ''}".strip()

    for required in ("street1", "city", "country", "zip", "name"):
        if not normalized.get(required):
            raise _missing(f"Incomplete address from {source}. Missing required field: {required}")

    country = str(normalized["country"]).upper()
    if country in REGIONAL_MARKETS and not normalized.get("state"):
        raise _missing(f"State/Province is required for {country} addresses in {source}")

    return {
        "name": str(normalized["name"]),
        "company": str(normalized.get("company") or ""),
        "street1": str(normalized["street1"]),
        "street2": str(normalized.get("street2") or ""),
        "city": str(normalized["city"]),
        "state": str(normalized.get("state") or ""),
        "zip": "".join(str(normalized["zip"]).split()),
        "country": country,
        "phone": str(normalized.get("phone") or ""),
        "email": str(normalized.get("email") or ""),
    }


@dataclass
class PackableItem:
    id: str
    length: float
    width: float
    height: float
    weight: float
    quantity: int


@dataclass
class PackedParcel:
    box_id: str
    box_name: str
    length: float
    width: float
    height: float
    weight: float = 0.0
    items: dict[str, int] = field(default_factory=dict)

    def to_parcel(self) -> dict[str, str]:
        return {
            "length": str(self.length),
            "width": str(self.width),
            "height": str(self.height),
            "distance_unit": DISTANCE_UNIT,
            "weight": str(round(self.weight, 2)),
            "mass_unit": MASS_UNIT,
        }


def _box_volume(box: dict[str, Any]) -> float:
    return box["length"] * box["width"] * box["height"]


def _pack_into(box: dict[str, Any], units: list[PackableItem]) -> list[int]:
    """Indexes of ``units`` that fit together in one ``box``."""
    packer = Packer()
    packer.add_bin(Bin(box["id"], box["length"], box["height"], box["width"], box["max_weight"]))
    for index, unit in enumerate(units):
        packer.add_item(Item(str(index), unit.length, unit.height, unit.width, unit.weight))
    packer.pack(bigger_first=True)
    return sorted(int(item.name) for item in packer.bins[0].items)


def pack_items(items: list[PackableItem]) -> list[PackedParcel]:
    """
    Assign every unit to a box from the catalog with 3D bin packing.

    The remaining units go into the smallest box that holds all of them.
    When no box does, the box holding the most units is filled and the
    rest are packed again.
    """
    remaining = [item for item in items for _ in range(item.quantity)]
    boxes = sorted(SHIPPING_BOX_CATALOG, key=_box_volume)

    parcels: list[PackedParcel] = []
    while remaining:
        best_box: Optional[dict[str, Any]] = None
        best_fit: list[int] = []
        for box in boxes:
            fitted = _pack_into(box, remaining)
            if len(fitted) > len(best_fit):
                best_box, best_fit = box, fitted
            if len(fitted) == len(remaining):
                break

        if best_box is None:
            raise _missing(f"No suitable box found in the catalog for SKU: {remaining[0].id}")

        parcel = PackedParcel(
            box_id=best_box["id"],
            box_name=best_box["name"],
            length=best_box["length"],
            width=best_box["width"],
            height=best_box["height"],
        )
        for index in best_fit:
            unit = remaining[index]
            parcel.weight += unit.weight
            parcel.items[unit.id] = parcel.items.get(unit.id, 0) + 1
        parcels.append(parcel)

        packed = set(best_fit)
        remaining = [unit for index, unit in enumerate(remaining) if index not in packed]

    return parcels


def _customs_price(variant: ProductVariant) -> tuple[Optional[Decimal], Optional[str]]:
    active = [p for p in variant.pricing if p.is_active and p.price_type == "base"]
    if not active:
        return None, None
    active.sort(key=lambda p: p.valid_from, reverse=True)
    return active[0].price, active[0].currency


def prepare_customs_declaration(
    origin: dict[str, str],
    destination: dict[str, str],
    items: list[CartLine],
    incoterm: str,
    contents_type: str = "MERCHANDISE",
) -> Optional[dict[str, Any]]:
    """Customs declaration for international shipments, ``None`` for domestic ones."""
    if origin.get("country") == destination.get("country"):
        return None

    if not origin.get("name"):
        raise _missing("Missing sender name for customs declaration. Please check logistics settings.")

    first_product = items[0].variant.product
    if not first_product.export_explanation:
        raise _missing("Missing export explanation for international shipment.")

    customs_items = []
    for item in items:
        variant = item.variant
        product = variant.product
        description = product.display_name("EN").strip()
        if not description:
            raise _missing(f"Missing description for customs (SKU: {variant.sku})")

        price, currency = _customs_price(variant)
        if price is None:
            raise _missing(f"Missing price for customs declaration (SKU: {variant.sku})")
        if not product.origin_country:
            raise _missing(f"Missing origin country for customs (SKU: {variant.sku})")

        customs_items.append(
            {
                "description": description,
                "quantity": item.quantity,
                "net_weight": str(variant.effective_weight),
                "mass_unit": MASS_UNIT,
                "value_amount": str(price),
                "value_currency": currency,
                "origin_country": product.origin_country,
                "tariff_number": product.hs_code or "",
            }
        )

    return {
        "contents_type": contents_type,
        "contents_explanation": first_product.export_explanation,
        "non_delivery_option": "RETURN",
        "certify": True,
        "certify_signer": origin["name"],
        "incoterm": incoterm,
        "items": customs_items,
    }


def _packable(item: CartLine) -> PackableItem:
    variant = item.variant
    weight = variant.effective_weight
    dims = variant.effective_dimensions or {}
    if not weight or not dims.get("length") or not dims.get("width") or not dims.get("height"):
        raise _missing(f"Missing dimensions or weight for SKU: {variant.sku}")
    return PackableItem(
        id=variant.sku,
        length=float(dims["length"]),
        width=float(dims["width"]),
        height=float(dims["height"]),
        weight=float(weight),
        quantity=item.quantity,
    )


def _classify(name: str, strategy: dict[str, Any]) -> bool:
    return any(k in name for k in strategy["keywords"]) and not any(k in name for k in strategy["excludes"])


def filter_and_label_rates(rates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Reduce carrier rates to the cheapest Standard and Express options.

    Amounts are converted to the site currency; rates that cannot be
    converted are dropped.
    """
    providers = settings.shipping_providers
    best: dict[str, dict[str, Any]] = {}

    logger.info("Processing raw shipping rates", count=len(rates))
    for rate in rates:
        name = str((rate.get("servicelevel") or {}).get("name") or "").lower()
        provider = str(rate.get("provider") or "").lower()

        if providers and not any(p in provider for p in providers):
            continue

        currency = str(rate.get("currency") or settings.site_currency).upper()
        try:
            amount = round_half_even(convert_currency(rate.get("amount", "0"), currency, settings.site_currency))
        except ValueError as e:
            logger.error("Currency conversion failed, skipping rate", currency=currency, error=str(e))
            continue

        for key in ("STANDARD", "EXPRESS"):
            strategy = SHIPPING_STRATEGIES[key]
            if not _classify(name, strategy):
                continue
            current = best.get(key)
            if current is None or amount < Decimal(current["amount"]):
                best[key] = {
                    **rate,
                    "amount": str(amount),
                    "currency": settings.site_currency,
                    "displayName": strategy["label"],
                    "displayTime": rate.get("duration_terms") or (str(rate["days"]) if rate.get("days") else None),
                }
            break

    return sorted(best.values(), key=lambda r: Decimal(r["amount"]))


class ShippingService:
    """Rate calculation for carts, explicit item lists and orders."""

    def __init__(self, session: AsyncSession, shippo: Optional[ShippoClient] = None) -> None:
        self.session = session
        self.shippo = shippo or shippo_client
        self.carts = CartRepository(session)
        self.variants = VariantRepository(session)

    async def resolve_items(
        self,
        cart_id: Optional[str] = None,
        items: Optional[list[dict[str, Any]]] = None,
    ) -> list[CartLine]:
        if items:
            variants = {v.id: v for v in await self.variants.get_many_active([i["variant_id"] for i in items])}
            lines = []
            for item in items:
                variant = variants.get(item["variant_id"])
                if variant is None:
                    raise not_found(f"Variant not found: {item['variant_id']}")
                lines.append(CartLine(variant=variant, quantity=int(item["quantity"])))
            return lines

        if cart_id:
            cart = await self.carts.get_fresh(cart_id)
            if cart is not None:
                return [CartLine(variant=i.variant, quantity=i.quantity, id=i.id) for i in cart.items]
        return []

    async def calculate_rates(
        self,
        address_to: dict[str, Any],
        items: list[CartLine],
    ) -> dict[str, Any]:
        """Pack the items and ask the carrier aggregator for rates."""
        if not items:
            raise _missing("No shipping items found.")

        address_to = validate_address(address_to, "Destination Address")

        product = items[0].variant.product
        origin = product.shipping_origin
        if origin is None:
            raise _missing(
                f"Shipping origin missing for product {product.display_name('EN', product.id)}. "
                "Please configure a shipping origin for this product."
            )
        if not origin.address or not isinstance(origin.address, dict):
            raise _missing(f"Origin address is invalid or missing for location: {origin.name}")
        address_from = validate_address({**origin.address, "name": origin.name}, f"Shipping Origin: {origin.name}")
        if not origin.incoterm:
            raise _missing(f"Incoterm is missing for shipping origin: {origin.name}")

        packed = pack_items([_packable(item) for item in items])
        parcels = [p.to_parcel() for p in packed]
        customs = prepare_customs_declaration(address_from, address_to, items, origin.incoterm)

        logger.info(
            "Requesting carrier rates",
            origin_country=address_from["country"],
            destination_country=address_to["country"],
            parcels=len(parcels),
            has_customs=customs is not None,
        )
        try:
            rates = await self.shippo.get_rates(address_from, address_to, parcels, customs)
        except ShippoAPIError as e:
            logger.error("Carrier rate request failed", error=str(e))
            raise AppError(
                ErrorCode.EXTERNAL_SERVICE_ERROR,
                f"Shipping carrier integration failed: {e}",
                502,
            )

        logger.info("Carrier rates received", count=len(rates))
        return {
            "rates": rates,
            "parcels": parcels,
            "customs_declaration": customs,
            "packing": packed,
        }

    async def get_shipping_rates(
        self,
        *,
        address_to: dict[str, Any],
        cart_id: Optional[str] = None,
        items: Optional[list[dict[str, Any]]] = None,
    ) -> list[dict[str, Any]]:
        address = validate_address(address_to, "Destination Address")
        lines = await self.resolve_items(cart_id, items)
        if not lines:
            raise _missing("No shipping items found.")

        result = await self.calculate_rates(address, lines)
        return filter_and_label_rates(result["rates"])
