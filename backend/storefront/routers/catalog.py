"""
Public catalog routes: products and categories.
"""
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import RequestLanguage
from storefront.core.database import get_db_session
from storefront.schemas.product import (
    CategoryDetailResponse,
    CategoryResponse,
    ProductListResponse,
    ProductResponse,
)
from storefront.services.catalog_service import CatalogService

router = APIRouter(tags=["catalog"])


async def get_catalog_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CatalogService:
    return CatalogService(session)


Catalog = Annotated[CatalogService, Depends(get_catalog_service)]


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    catalog: Catalog,
    language: RequestLanguage,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=200),
    featured: Optional[bool] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
) -> ProductListResponse:
    """List active products with pagination, search and category filter."""
    products, pagination = await catalog.list_products(
        is_featured=featured,
        category_slug=category,
        search=search,
        language=language.value,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        pagination=pagination,
    )


@router.get("/products/{slug}", response_model=ProductResponse)
async def get_product(slug: str, catalog: Catalog) -> ProductResponse:
    product = await catalog.get_product_by_slug(slug)
    return ProductResponse.model_validate(product)


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(catalog: Catalog, language: RequestLanguage) -> list[CategoryResponse]:
    categories = await catalog.list_categories(language.value)
    return [CategoryResponse.model_validate(c) for c in categories]


@router.get("/categories/{slug}", response_model=CategoryDetailResponse)
async def get_category(slug: str, catalog: Catalog, language: RequestLanguage) -> CategoryDetailResponse:
    """Category with its active products."""
    data = await catalog.get_category_by_slug(slug, language.value)
    products = [ProductResponse.model_validate(p) for p in data.pop("products")]
    return CategoryDetailResponse(**data, products=products)
