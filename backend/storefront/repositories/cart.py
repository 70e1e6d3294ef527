"""
Cart repository for data access operations.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select

from storefront.models.cart import Cart, CartItem, CartStatus
from storefront.repositories.base import BaseRepository


class CartRepository(BaseRepository[Cart]):
    """Repository for Cart and CartItem operations."""

    model = Cart

    async def get_fresh(self, cart_id: str) -> Optional[Cart]:
        """Reload a cart with its items from the database."""
        stmt = (
            select(Cart)
            .where(Cart.id == cart_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for_user(self, user_id: str) -> Optional[Cart]:
        stmt = (
            select(Cart)
            .where(Cart.user_id == user_id, Cart.status == CartStatus.ACTIVE.value)
            .order_by(Cart.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_active_for_anonymous(self, anonymous_id: str) -> Optional[Cart]:
        stmt = (
            select(Cart)
            .where(
                Cart.anonymous_id == anonymous_id,
                Cart.user_id.is_(None),
                Cart.status == CartStatus.ACTIVE.value,
            )
            .order_by(Cart.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_item(self, item_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(CartItem.id == item_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_item_for_variant(self, cart_id: str, variant_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.variant_id == variant_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_item(self, cart_id: str, variant_id: str, quantity: int) -> CartItem:
        item = CartItem(cart_id=cart_id, variant_id=variant_id, quantity=quantity)
        self.session.add(item)
        await self.session.flush()
        await self.session.refresh(item)
        return item

    async def delete_item(self, item: CartItem) -> None:
        await self.session.delete(item)
        await self.session.flush()

    async def clear_items(self, cart_id: str) -> int:
        result = await self.session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
        await self.session.flush()
        return result.rowcount or 0

    async def delete_expired_anonymous(self, now: datetime) -> int:
        expired = select(Cart.id).where(
            Cart.user_id.is_(None),
            Cart.status == CartStatus.ACTIVE.value,
            Cart.expires_at.is_not(None),
            Cart.expires_at < now,
        )
        await self.session.execute(delete(CartItem).where(CartItem.cart_id.in_(expired)))
        result = await self.session.execute(delete(Cart).where(Cart.id.in_(expired)))
        await self.session.flush()
        return result.rowcount or 0
