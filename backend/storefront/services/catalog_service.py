"""
Catalog service - storefront product queries and admin product management.
"""
import math
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import AppError, ErrorCode, not_found
from storefront.core.logging import get_logger
from storefront.models.catalog import (
    Category,
    Product,
    ProductInventory,
    ProductPricing,
    ProductStatus,
    ProductTranslation,
    ProductVariant,
)
from storefront.repositories.product import CategoryRepository, ProductRepository, VariantRepository
from storefront.schemas.product import (
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
    "sortOrder": Product.sort_order,
    "slug": Product.slug,
}


def is_product_available(product: Product) -> bool:
    """ACTIVE with at least one variant that can be sold right now."""
    if product.status != ProductStatus.ACTIVE.value or product.deleted_at is not None:
        return False
    for variant in product.active_variants:
        inventory = variant.inventory
        if inventory is None:
            continue
        if not inventory.track_inventory or inventory.allow_backorder or inventory.available_stock > 0:
            return True
    return False


class CatalogService:
    """Product, variant and category operations for one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.products = ProductRepository(session)
        self.variants = VariantRepository(session)
        self.categories = CategoryRepository(session)

    # ------------------------------------------------------------------
    # Storefront
    # ------------------------------------------------------------------

    async def list_products(
        self,
        *,
        status: Optional[str] = ProductStatus.ACTIVE.value,
        is_featured: Optional[bool] = None,
        category_slug: Optional[str] = None,
        search: Optional[str] = None,
        language: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Product], dict[str, int]]:
        page = max(page, 1)
        limit = max(min(limit, 100), 1)

        column = SORTABLE_COLUMNS.get(sort_by)
        if column is None:
            # name and price live on related tables
            logger.warning("Unsupported product sort, using createdAt", sort_by=sort_by)
            column = Product.created_at

        products, total = await self.products.search(
            status=status,
            is_featured=is_featured,
            category_slug=category_slug,
            search=search,
            language=language,
            sort_column=column,
            descending=sort_order.lower() != "asc",
            skip=(page - 1) * limit,
            limit=limit,
        )
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        }
        return products, pagination

    async def get_product_by_slug(self, slug: str, *, active_only: bool = True) -> Product:
        product = await self.products.get_by_slug(slug)
        if product is None or (active_only and product.status != ProductStatus.ACTIVE.value):
            raise not_found(f"Product not found: {slug}")
        return product

    async def count_active_products(self) -> int:
        return await self.products.count_by_status(ProductStatus.ACTIVE.value)

    async def list_categories(self, language: str, include_inactive: bool = False) -> list[dict[str, Any]]:
        categories = await self.categories.list_categories(include_inactive=include_inactive)
        return [self._category_dict(category, language) for category in categories]

    async def get_category_by_slug(self, slug: str, language: str) -> dict[str, Any]:
        category = await self.categories.get_by_slug(slug)
        if category is None or not category.is_active:
            raise not_found(f"Category not found: {slug}")
        data = self._category_dict(category, language)
        data["products"] = await self.categories.get_products(
            category.id,
            status=ProductStatus.ACTIVE.value,
        )
        return data

    @staticmethod
    def _category_dict(category: Category, language: str) -> dict[str, Any]:
        translation = next((t for t in category.translations if t.language == language), None)
        return {
            "id": category.id,
            "slug": category.slug,
            "name": category.display_name(language),
            "description": translation.description if translation else None,
            "parent_id": category.parent_id,
            "sort_order": category.sort_order,
        }

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def list_all_products(self, status: Optional[str] = None, page: int = 1, limit: int = 50):
        if status == "all":
            status = None
        return await self.list_products(
            status=status,
            page=page,
            limit=limit,
            sort_by="sortOrder",
            sort_order="asc",
        )

    async def get_product_for_admin(self, product_id: str) -> Product:
        product = await self.products.get_by_id(product_id)
        if product is None or product.deleted_at is not None:
            raise not_found(f"Product not found: {product_id}")
        return product

    async def create_product(self, data: ProductCreate) -> Product:
        if await self.products.slug_exists(data.slug):
            raise AppError(ErrorCode.ALREADY_EXISTS, f"Slug already in use: {data.slug}", 409)

        product = Product(
            slug=data.slug,
            status=data.status.value,
            is_featured=data.is_featured,
            sort_order=data.sort_order,
            origin_country=data.origin_country,
            hs_code=data.hs_code,
            export_explanation=data.export_explanation,
            shipping_origin_id=data.shipping_origin_id,
            weight=data.weight,
            dimensions=data.dimensions.model_dump() if data.dimensions else None,
            translations=[
                ProductTranslation(
                    language=t.language.value,
                    name=t.name,
                    description=t.description,
                    short_description=t.short_description,
                    meta_title=t.meta_title,
                    meta_description=t.meta_description,
                )
                for t in data.translations
            ],
            variants=[],
            media=[],
            categories=await self.categories.get_many(data.category_ids),
        )
        self.session.add(product)
        await self.session.flush()

        logger.info("Product created", product_id=product.id, slug=product.slug)
        return await self.products.get_fresh(product.id)

    async def update_product(self, product_id: str, data: ProductUpdate) -> Product:
        product = await self.get_product_for_admin(product_id)
        fields = data.model_dump(
            exclude_unset=True,
            by_alias=False,
            exclude={"translations", "category_ids", "dimensions"},
        )

        if "slug" in fields and fields["slug"] and await self.products.slug_exists(fields["slug"], product.id):
            raise AppError(ErrorCode.ALREADY_EXISTS, f"Slug already in use: {fields['slug']}", 409)

        for field, value in fields.items():
            if field == "status" and value is not None:
                value = ProductStatus(value).value
            setattr(product, field, value)

        if "dimensions" in data.model_fields_set:
            product.dimensions = data.dimensions.model_dump() if data.dimensions else None

        if data.translations is not None:
            existing = {t.language: t for t in product.translations}
            for t in data.translations:
                current = existing.get(t.language.value)
                if current is None:
                    product.translations.append(
                        ProductTranslation(
                            language=t.language.value,
                            name=t.name,
                            description=t.description,
                            short_description=t.short_description,
                            meta_title=t.meta_title,
                            meta_description=t.meta_description,
                        )
                    )
                else:
                    current.name = t.name
                    current.description = t.description
                    current.short_description = t.short_description
                    current.meta_title = t.meta_title
                    current.meta_description = t.meta_description

        if data.category_ids is not None:
            product.categories = await self.categories.get_many(data.category_ids)

        product.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        logger.info("Product updated", product_id=product.id, slug=product.slug)
        return await self.products.get_fresh(product.id)

    async def delete_product(self, product_id: str) -> None:
        product = await self.products.get_by_id(product_id)
        if product is None:
            raise not_found(f"Product not found: {product_id}")
        await self.products.delete(product)
        logger.info("Product deleted", product_id=product_id)

    async def reorder_products(self, items: list[tuple[str, int]]) -> None:
        await self.products.set_sort_orders(items)
        logger.info("Products reordered", count=len(items))

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    async def list_variants(self, product_id: str) -> list[ProductVariant]:
        await self.get_product_for_admin(product_id)
        return await self.variants.get_for_product(product_id)

    async def _get_variant(self, product_id: str, variant_id: str) -> ProductVariant:
        variant = await self.variants.get_active(variant_id)
        if variant is None or variant.product_id != product_id:
            raise not_found(f"Variant not found: {variant_id}")
        return variant

    async def create_variant(self, product_id: str, data: VariantCreate) -> ProductVariant:
        await self.get_product_for_admin(product_id)
        if await self.variants.sku_exists(data.sku):
            raise AppError(ErrorCode.ALREADY_EXISTS, f"SKU already in use: {data.sku}", 409)

        variant = ProductVariant(
            product_id=product_id,
            sku=data.sku,
            weight=data.weight,
            dimensions=data.dimensions.model_dump() if data.dimensions else None,
            pricing=[
                ProductPricing(price=p.price, currency=p.currency, price_type="base", is_active=True)
                for p in data.prices
            ],
            inventory=ProductInventory(
                stock=data.stock,
                reserved_stock=0,
                low_stock_threshold=data.low_stock_threshold,
                track_inventory=data.track_inventory,
                allow_backorder=data.allow_backorder,
            ),
        )
        self.session.add(variant)
        await self.session.flush()
        await self.session.refresh(variant)
        logger.info("Variant created", product_id=product_id, sku=variant.sku)
        return variant

    async def update_variant(self, product_id: str, variant_id: str, data: VariantUpdate) -> ProductVariant:
        variant = await self._get_variant(product_id, variant_id)

        if data.sku and data.sku != variant.sku:
            if await self.variants.sku_exists(data.sku, variant.id):
                raise AppError(ErrorCode.ALREADY_EXISTS, f"SKU already in use: {data.sku}", 409)
            variant.sku = data.sku
        if data.weight is not None:
            variant.weight = data.weight
        if "dimensions" in data.model_fields_set:
            variant.dimensions = data.dimensions.model_dump() if data.dimensions else None

        if data.prices is not None:
            for price in data.prices:
                for entry in variant.pricing:
                    if entry.currency == price.currency and entry.price_type == "base" and entry.is_active:
                        entry.is_active = False
                variant.pricing.append(
                    ProductPricing(price=price.price, currency=price.currency, price_type="base", is_active=True)
                )

        if variant.inventory is None:
            variant.inventory = ProductInventory(stock=0, reserved_stock=0)
        inventory_fields = data.model_dump(
            exclude_unset=True,
            by_alias=False,
            include={"stock", "low_stock_threshold", "track_inventory", "allow_backorder"},
        )
        for field, value in inventory_fields.items():
            if value is not None:
                setattr(variant.inventory, field, value)

        await self.session.flush()
        await self.session.refresh(variant)
        logger.info("Variant updated", variant_id=variant.id)
        return variant

    async def delete_variant(self, product_id: str, variant_id: str) -> None:
        variant = await self._get_variant(product_id, variant_id)
        variant.deleted_at = datetime.now(timezone.utc)
        await self.session.flush()
        logger.info("Variant soft deleted", variant_id=variant_id)
