"""
Order repository for data access operations.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, or_, select

from storefront.models.order import Order, OrderStatus, Payment, Shipment
from storefront.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Repository for Order model operations."""

    model = Order

    async def get_fresh(self, order_id: str) -> Optional[Order]:
        """Reload an order with items, payments, shipments and history."""
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id_or_number(self, value: str) -> Optional[Order]:
        stmt = select(Order).where(or_(Order.id == value, Order.order_number == value))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_for_user(self, user_id: str) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_orders(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        """
        Admin order listing with filtering.
        Returns (orders, total_count) tuple.
        """
        base_query = select(Order)
        if status:
            base_query = base_query.where(Order.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            base_query = base_query.where(
                or_(
                    func.lower(Order.order_number).like(pattern),
                    func.lower(Order.order_email).like(pattern),
                )
            )
        return await self.paginate(
            base_query,
            skip=skip,
            limit=limit,
            order_by=Order.created_at.desc(),
        )

    async def count_created_in_year(self, start: datetime, end: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(Order.created_at >= start, Order.created_at < end)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def order_number_exists(self, order_number: str) -> bool:
        result = await self.session.execute(
            select(Order.id).where(Order.order_number == order_number)
        )
        return result.first() is not None

    async def get_payment_by_external_id(self, external_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.external_id == external_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_shipment_by_tracking(self, tracking_code: str) -> Optional[Shipment]:
        stmt = (
            select(Shipment)
            .where(Shipment.tracking_code == tracking_code)
            .order_by(Shipment.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def count_purchases_since(self, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(
                Order.created_at >= since,
                Order.status != OrderStatus.CANCELLED.value,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def stats_by_source(self, since: datetime) -> list[dict[str, Any]]:
        """Order count and revenue grouped by utm_source."""
        stmt = (
            select(
                Order.utm_source,
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_amount), 0),
            )
            .where(Order.created_at >= since)
            .group_by(Order.utm_source)
        )
        result = await self.session.execute(stmt)
        return [
            {"source": source or "direct", "orders": int(count), "revenue": float(revenue)}
            for source, count, revenue in result.all()
        ]
