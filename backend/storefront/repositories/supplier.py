"""
Supplier repository for data access operations.
"""
from sqlalchemy import select

from storefront.models.supplier import Supplier
from storefront.repositories.base import BaseRepository


class SupplierRepository(BaseRepository[Supplier]):
    """Repository for Supplier model operations."""

    model = Supplier

    async def list_active(self) -> list[Supplier]:
        stmt = (
            select(Supplier)
            .where(Supplier.is_active.is_(True))
            .order_by(Supplier.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
