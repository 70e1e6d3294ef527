"""
User repository for data access operations.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, or_, select

from storefront.models.order import Order
from storefront.models.user import User, UserRole
from storefront.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    model = User

    async def get_by_clerk_id(self, clerk_id: str) -> Optional[User]:
        stmt = select(User).where(User.clerk_id == clerk_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_by_clerk_id(self, clerk_id: str, data: dict) -> tuple[User, bool]:
        """
        Create or update a user from auth provider data.
        Returns (user, created) tuple.
        """
        existing = await self.get_by_clerk_id(clerk_id)
        if existing:
            for field, value in data.items():
                setattr(existing, field, value)
            await self.session.flush()
            await self.session.refresh(existing)
            return existing, False

        user = await self.create({"clerk_id": clerk_id, **data})
        return user, True

    async def delete_by_clerk_id(self, clerk_id: str) -> int:
        stmt = delete(User).where(User.clerk_id == clerk_id)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0

    async def list_users(
        self,
        *,
        role: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        base_query = select(User)
        if role:
            base_query = base_query.where(User.role == role)
        if search:
            pattern = f"%{search.lower()}%"
            base_query = base_query.where(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                )
            )
        return await self.paginate(
            base_query,
            skip=skip,
            limit=limit,
            order_by=User.created_at.desc(),
        )

    async def count_customers(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count()).select_from(User).where(User.role == UserRole.CLIENT.value)
        if since is not None:
            stmt = stmt.where(User.created_at >= since)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_customers_with_orders(self) -> int:
        stmt = select(func.count(func.distinct(Order.user_id))).where(Order.user_id.is_not(None))
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_order_stats(self, user_id: str) -> tuple[int, float]:
        """Return (order count, total spent) for a user."""
        stmt = select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount), 0),
        ).where(Order.user_id == user_id)
        result = await self.session.execute(stmt)
        count, total = result.one()
        return int(count or 0), float(total or 0)
