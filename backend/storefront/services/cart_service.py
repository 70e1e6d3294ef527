"""
Cart service - carts for users and anonymous visitors.

A request is identified either by the signed-in user or by the anonymous
id stored in the cart cookie; on sign-in the anonymous cart is merged into
the user's cart.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import AppError, ErrorCode, forbidden, not_found
from storefront.core.logging import get_logger
from storefront.models.cart import Cart, CartItem, CartStatus
from storefront.models.catalog import ProductStatus, ProductVariant
from storefront.repositories.cart import CartRepository
from storefront.repositories.product import VariantRepository
from storefront.services.pricing import CartCalculation, calculate_cart

logger = get_logger(__name__)


@dataclass
class CartIdentity:
    user_id: Optional[str] = None
    anonymous_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.user_id and not self.anonymous_id


def _insufficient_stock(available: int) -> AppError:
    return AppError(
        ErrorCode.INSUFFICIENT_STOCK,
        f"Insufficient stock. Available: {available}",
        409,
        {"available": available},
    )


def _check_stock(variant: ProductVariant, quantity: int) -> None:
    inventory = variant.inventory
    if inventory is None:
        raise _insufficient_stock(0)
    if inventory.track_inventory and not inventory.allow_backorder and inventory.stock < quantity:
        raise _insufficient_stock(inventory.stock)


class CartService:
    """Cart operations for one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.carts = CartRepository(session)
        self.variants = VariantRepository(session)

    async def find_cart(self, identity: CartIdentity) -> Optional[Cart]:
        if identity.user_id:
            return await self.carts.get_active_for_user(identity.user_id)
        if identity.anonymous_id:
            return await self.carts.get_active_for_anonymous(identity.anonymous_id)
        return None

    async def get_or_create_cart(self, identity: CartIdentity) -> Cart:
        if identity.is_empty:
            raise AppError(ErrorCode.INVALID_INPUT, "A user id or an anonymous id is required", 400)

        cart = await self.find_cart(identity)
        if cart is not None:
            return cart

        expires_at = None
        if not identity.user_id:
            expires_at = datetime.now(timezone.utc) + timedelta(days=settings.cart_expiration_days)

        cart = await self.carts.create(
            {
                "user_id": identity.user_id,
                "anonymous_id": None if identity.user_id else identity.anonymous_id,
                "status": CartStatus.ACTIVE.value,
                "currency": settings.site_currency,
                "expires_at": expires_at,
            }
        )
        logger.info("Cart created", cart_id=cart.id, user_id=identity.user_id)
        return cart

    async def _load_sellable_variant(self, variant_id: str) -> ProductVariant:
        variant = await self.variants.get_active(variant_id)
        if variant is None:
            raise not_found("Product variant not found")
        if variant.product is None or variant.product.status != ProductStatus.ACTIVE.value:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Product is not available", 400)
        return variant

    async def add_to_cart(self, identity: CartIdentity, variant_id: str, quantity: int) -> Cart:
        if quantity < 1:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Quantity must be at least 1", 400)

        variant = await self._load_sellable_variant(variant_id)
        _check_stock(variant, quantity)

        cart = await self.get_or_create_cart(identity)
        existing = await self.carts.get_item_for_variant(cart.id, variant.id)
        if existing is not None:
            new_quantity = existing.quantity + quantity
            _check_stock(variant, new_quantity)
            existing.quantity = new_quantity
            await self.session.flush()
        else:
            await self.carts.add_item(cart.id, variant.id, quantity)

        logger.info("Added to cart", cart_id=cart.id, variant_id=variant.id, quantity=quantity)
        return await self.carts.get_fresh(cart.id)

    async def _owned_item(self, identity: CartIdentity, item_id: str) -> CartItem:
        item = await self.carts.get_item(item_id)
        if item is None:
            raise not_found("Cart item not found")
        cart = await self.carts.get_by_id(item.cart_id)
        owned = cart is not None and (
            (identity.user_id and cart.user_id == identity.user_id)
            or (identity.anonymous_id and cart.user_id is None and cart.anonymous_id == identity.anonymous_id)
        )
        if not owned:
            raise forbidden("Unauthorized")
        return item

    async def update_cart_line(self, identity: CartIdentity, item_id: str, quantity: int) -> Cart:
        if quantity < 1:
            raise AppError(ErrorCode.VALIDATION_ERROR, "Quantity must be at least 1", 400)
        item = await self._owned_item(identity, item_id)
        _check_stock(item.variant, quantity)
        item.quantity = quantity
        await self.session.flush()
        return await self.carts.get_fresh(item.cart_id)

    async def remove_cart_line(self, identity: CartIdentity, item_id: str) -> Cart:
        item = await self._owned_item(identity, item_id)
        cart_id = item.cart_id
        await self.carts.delete_item(item)
        return await self.carts.get_fresh(cart_id)

    async def clear_cart(self, cart_id: str) -> None:
        removed = await self.carts.clear_items(cart_id)
        logger.info("Cart cleared", cart_id=cart_id, removed=removed)

    async def merge_anonymous_cart(self, user_id: str, anonymous_id: str) -> Cart:
        """
        Move an anonymous cart's lines into the user's cart.

        Quantities for the same variant are summed and capped at tracked
        stock. The anonymous cart is marked CONVERTED so repeating the merge
        is a no-op.
        """
        anonymous_cart = await self.carts.get_active_for_anonymous(anonymous_id)
        user_cart = await self.get_or_create_cart(CartIdentity(user_id=user_id))

        if anonymous_cart is None or not anonymous_cart.items:
            logger.info("No anonymous cart to merge", user_id=user_id)
            return user_cart

        existing = {item.variant_id: item for item in user_cart.items}
        for anon_item in anonymous_cart.items:
            variant = anon_item.variant
            current = existing.get(anon_item.variant_id)
            new_quantity = anon_item.quantity + (current.quantity if current else 0)

            inventory = variant.inventory
            if inventory and inventory.track_inventory and not inventory.allow_backorder:
                if new_quantity > inventory.stock:
                    logger.warning(
                        "Merged quantity capped at stock",
                        variant_id=variant.id,
                        requested=new_quantity,
                        stock=inventory.stock,
                    )
                    new_quantity = max(inventory.stock, 0)

            if new_quantity <= 0:
                continue

            if current is not None:
                current.quantity = new_quantity
            else:
                self.session.add(CartItem(cart_id=user_cart.id, variant_id=variant.id, quantity=new_quantity))

        anonymous_cart.status = CartStatus.CONVERTED.value
        await self.session.flush()

        logger.info(
            "Anonymous cart merged",
            user_id=user_id,
            anonymous_cart_id=anonymous_cart.id,
            user_cart_id=user_cart.id,
        )
        return await self.carts.get_fresh(user_cart.id)

    async def clean_invalid_cart_items(self, cart_id: str) -> int:
        """Drop lines whose product is gone, inactive or out of stock."""
        cart = await self.carts.get_fresh(cart_id)
        if cart is None:
            return 0

        removed = 0
        for item in list(cart.items):
            variant = item.variant
            product = variant.product if variant else None
            invalid = (
                variant is None
                or variant.deleted_at is not None
                or product is None
                or product.deleted_at is not None
                or product.status != ProductStatus.ACTIVE.value
            )
            if not invalid:
                inventory = variant.inventory
                if inventory and inventory.track_inventory and not inventory.allow_backorder:
                    invalid = inventory.stock < item.quantity
            if invalid:
                await self.session.delete(item)
                removed += 1

        if removed:
            await self.session.flush()
            logger.info("Invalid cart items removed", cart_id=cart_id, removed=removed)
        return removed

    async def get_cart_summary(
        self,
        identity: CartIdentity,
        language: str,
        currency: Optional[str] = None,
    ) -> dict[str, Any]:
        cart = await self.find_cart(identity)
        if cart is None:
            return {
                "id": None,
                "status": None,
                "currency": settings.site_currency,
                "items": [],
                "calculation": CartCalculation(currency=settings.site_currency).to_dict(),
            }

        calculation = calculate_cart(cart, currency or cart.currency, language)
        return {
            "id": cart.id,
            "status": cart.status,
            "currency": cart.currency,
            "items": [
                {
                    "id": item.id,
                    "variantId": item.variant_id,
                    "sku": item.variant.sku,
                    "quantity": item.quantity,
                    "productSlug": item.variant.product.slug if item.variant.product else None,
                }
                for item in cart.items
            ],
            "calculation": calculation.to_dict(),
        }

    async def delete_expired_carts(self, now: Optional[datetime] = None) -> int:
        deleted = await self.carts.delete_expired_anonymous(now or datetime.now(timezone.utc))
        logger.info("Expired carts deleted", deleted=deleted)
        return deleted
