"""
Logistics service - shipping origins (own stock locations and dropshippers).
"""
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import not_found
from storefront.core.logging import get_logger
from storefront.models.supplier import Supplier
from storefront.repositories.product import ProductRepository
from storefront.repositories.supplier import SupplierRepository
from storefront.schemas.supplier import LocationCreate, LocationUpdate

logger = get_logger(__name__)


class LogisticsService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.suppliers = SupplierRepository(session)
        self.products = ProductRepository(session)

    async def list_locations(self) -> list[Supplier]:
        return await self.suppliers.list_active()

    async def get_location(self, location_id: str) -> Supplier:
        location = await self.suppliers.get_by_id(location_id)
        if location is None:
            raise not_found("Location not found")
        return location

    async def create_location(self, data: LocationCreate) -> Supplier:
        location = await self.suppliers.create(
            {
                "name": data.name,
                "type": data.type.value,
                "incoterm": data.incoterm.value,
                "address": data.address.model_dump(exclude_none=True),
                "is_active": True,
                "default_currency": settings.site_currency,
            }
        )
        logger.info("Location created", location_id=location.id, name=location.name)
        return location

    async def update_location(self, location_id: str, data: LocationUpdate) -> Supplier:
        location = await self.get_location(location_id)
        fields = data.model_dump(exclude_unset=True, exclude={"address"})
        for field, value in fields.items():
            if value is None:
                continue
            setattr(location, field, value.value if hasattr(value, "value") else value)
        if data.address is not None:
            location.address = data.address.model_dump(exclude_none=True)

        await self.session.flush()
        await self.session.refresh(location)
        logger.info("Location updated", location_id=location.id)
        return location

    async def deactivate_location(self, location_id: str) -> dict[str, Any]:
        """
        Deactivate a location.

        Products still ACTIVE on it would have no way to ship, so they are
        moved back to DRAFT in the same transaction.
        """
        location = await self.get_location(location_id)
        affected = await self.products.draft_active_for_origin(location.id)
        location.is_active = False
        await self.session.flush()

        logger.info("Location deactivated", location_id=location_id, affected_products=affected)
        return {"success": True, "affected_products_count": affected}
