"""
Inventory service - stock availability, reservations and movements.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import AppError, ErrorCode
from storefront.core.logging import get_logger
from storefront.models.catalog import ProductInventory

logger = get_logger(__name__)


@dataclass
class StockLine:
    variant_id: str
    quantity: int


@dataclass
class StockAvailability:
    available: bool
    # None means the variant is not tracked (unlimited)
    available_stock: Optional[int]


class InventoryService:
    """Stock checks and movements scoped to a database session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_inventory(self, variant_id: str, *, for_update: bool = False) -> Optional[ProductInventory]:
        stmt = select(ProductInventory).where(ProductInventory.variant_id == variant_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def check_stock_availability(self, variant_id: str, quantity: int) -> StockAvailability:
        inventory = await self._get_inventory(variant_id)
        if inventory is None:
            return StockAvailability(available=False, available_stock=0)
        if not inventory.track_inventory:
            return StockAvailability(available=True, available_stock=None)

        available_stock = inventory.available_stock
        available = available_stock >= quantity or inventory.allow_backorder
        return StockAvailability(available=available, available_stock=available_stock)

    async def is_low_stock(self, variant_id: str) -> bool:
        inventory = await self._get_inventory(variant_id)
        if inventory is None or not inventory.track_inventory:
            return False
        return inventory.available_stock <= inventory.low_stock_threshold

    async def reserve_stock(self, items: Iterable[StockLine]) -> None:
        """Reserve stock for checkout. Untracked variants are skipped."""
        items = list(items)
        for item in items:
            inventory = await self._get_inventory(item.variant_id, for_update=True)
            if inventory is None:
                raise AppError(
                    ErrorCode.INSUFFICIENT_STOCK,
                    f"Insufficient stock for variant {item.variant_id}. Requested: {item.quantity}",
                    409,
                )
            if not inventory.track_inventory:
                continue
            if inventory.available_stock < item.quantity and not inventory.allow_backorder:
                raise AppError(
                    ErrorCode.INSUFFICIENT_STOCK,
                    f"Insufficient stock for variant {item.variant_id}. Requested: {item.quantity}",
                    409,
                    {"variantId": item.variant_id, "available": inventory.available_stock},
                )
            inventory.reserved_stock += item.quantity
        await self.session.flush()
        logger.info("Stock reserved", lines=len(items))

    async def release_stock(self, items: Iterable[StockLine]) -> None:
        """Undo a reservation (payment failed or checkout expired)."""
        for item in items:
            inventory = await self._get_inventory(item.variant_id, for_update=True)
            if inventory is None or not inventory.track_inventory:
                continue
            inventory.reserved_stock = max(0, inventory.reserved_stock - item.quantity)
        await self.session.flush()

    async def decrement_stock(self, items: Iterable[StockLine]) -> None:
        """Consume stock for a paid order and drop the matching reservation."""
        for item in items:
            inventory = await self._get_inventory(item.variant_id, for_update=True)
            if inventory is None or not inventory.track_inventory:
                continue
            inventory.stock -= item.quantity
            inventory.reserved_stock = max(0, inventory.reserved_stock - item.quantity)
            if inventory.stock < 0 and not inventory.allow_backorder:
                logger.warning("Stock went negative", variant_id=item.variant_id, stock=inventory.stock)
        await self.session.flush()

    async def increment_stock(self, items: Iterable[StockLine]) -> None:
        """Put stock back (cancellation, refund)."""
        for item in items:
            inventory = await self._get_inventory(item.variant_id, for_update=True)
            if inventory is None or not inventory.track_inventory:
                continue
            inventory.stock += item.quantity
        await self.session.flush()
