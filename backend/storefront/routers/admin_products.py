"""
Admin catalog management routes.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AdminUser
from storefront.core.database import get_db_session
from storefront.schemas.product import (
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    ReorderRequest,
    VariantCreate,
    VariantResponse,
    VariantUpdate,
)
from storefront.services.catalog_service import CatalogService

router = APIRouter(prefix="/admin/products", tags=["admin-products"])


async def get_catalog_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CatalogService:
    return CatalogService(session)


Catalog = Annotated[CatalogService, Depends(get_catalog_service)]


@router.get("", response_model=ProductListResponse)
async def list_products(
    catalog: Catalog,
    admin: AdminUser,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
) -> ProductListResponse:
    """All non-deleted products; ``status=all`` or no status lists every status."""
    products, pagination = await catalog.list_all_products(status_filter, page, limit)
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        pagination=pagination,
    )


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(body: ProductCreate, catalog: Catalog, admin: AdminUser) -> ProductResponse:
    return ProductResponse.model_validate(await catalog.create_product(body))


@router.post("/reorder", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_products(body: ReorderRequest, catalog: Catalog, admin: AdminUser) -> None:
    await catalog.reorder_products([(item.id, item.sort_order) for item in body.items])


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, catalog: Catalog, admin: AdminUser) -> ProductResponse:
    return ProductResponse.model_validate(await catalog.get_product_for_admin(product_id))


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    body: ProductUpdate,
    catalog: Catalog,
    admin: AdminUser,
) -> ProductResponse:
    return ProductResponse.model_validate(await catalog.update_product(product_id, body))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: str, catalog: Catalog, admin: AdminUser) -> None:
    await catalog.delete_product(product_id)


@router.get("/{product_id}/variants", response_model=list[VariantResponse])
async def list_variants(product_id: str, catalog: Catalog, admin: AdminUser) -> list[VariantResponse]:
    return [VariantResponse.model_validate(v) for v in await catalog.list_variants(product_id)]


@router.post(
    "/{product_id}/variants",
    response_model=VariantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_variant(
    product_id: str,
    body: VariantCreate,
    catalog: Catalog,
    admin: AdminUser,
) -> VariantResponse:
    return VariantResponse.model_validate(await catalog.create_variant(product_id, body))


@router.patch("/{product_id}/variants/{variant_id}", response_model=VariantResponse)
async def update_variant(
    product_id: str,
    variant_id: str,
    body: VariantUpdate,
    catalog: Catalog,
    admin: AdminUser,
) -> VariantResponse:
    return VariantResponse.model_validate(await catalog.update_variant(product_id, variant_id, body))


@router.delete("/{product_id}/variants/{variant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_variant(product_id: str, variant_id: str, catalog: Catalog, admin: AdminUser) -> None:
    """Soft delete; the variant stays referenced by past orders."""
    await catalog.delete_variant(product_id, variant_id)
