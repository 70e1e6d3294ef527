"""
Admin logistics routes - shipping origin locations.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AdminUser
from storefront.core.database import get_db_session
from storefront.schemas.supplier import (
    DeactivateLocationResponse,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
)
from storefront.services.logistics_service import LogisticsService

router = APIRouter(prefix="/admin/logistics/locations", tags=["admin-logistics"])


async def get_logistics_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> LogisticsService:
    return LogisticsService(session)


Logistics = Annotated[LogisticsService, Depends(get_logistics_service)]


@router.get("", response_model=list[LocationResponse])
async def list_locations(logistics: Logistics, admin: AdminUser) -> list[LocationResponse]:
    return [LocationResponse.model_validate(loc) for loc in await logistics.list_locations()]


@router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def create_location(body: LocationCreate, logistics: Logistics, admin: AdminUser) -> LocationResponse:
    return LocationResponse.model_validate(await logistics.create_location(body))


@router.get("/{location_id}", response_model=LocationResponse)
async def get_location(location_id: str, logistics: Logistics, admin: AdminUser) -> LocationResponse:
    return LocationResponse.model_validate(await logistics.get_location(location_id))


@router.patch("/{location_id}", response_model=LocationResponse)
async def update_location(
    location_id: str,
    body: LocationUpdate,
    logistics: Logistics,
    admin: AdminUser,
) -> LocationResponse:
    return LocationResponse.model_validate(await logistics.update_location(location_id, body))


@router.delete("/{location_id}", response_model=DeactivateLocationResponse)
async def deactivate_location(
    location_id: str,
    logistics: Logistics,
    admin: AdminUser,
) -> DeactivateLocationResponse:
    """Deactivate a location; its ACTIVE products go back to DRAFT."""
    return DeactivateLocationResponse.model_validate(await logistics.deactivate_location(location_id))
