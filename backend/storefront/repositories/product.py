"""
Catalog repositories: products, variants and categories.
"""
from typing import Any, Optional

from sqlalchemy import func, or_, select, update

from storefront.models.catalog import (
    Category,
    Product,
    ProductStatus,
    ProductTranslation,
    ProductVariant,
)
from storefront.repositories.base import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """Repository for Product model operations."""

    model = Product

    async def get_by_slug(self, slug: str, *, include_deleted: bool = False) -> Optional[Product]:
        stmt = select(Product).where(Product.slug == slug)
        if not include_deleted:
            stmt = stmt.where(Product.deleted_at.is_(None))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_fresh(self, product_id: str) -> Optional[Product]:
        """Reload a product and its eager relationships from the database."""
        stmt = (
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def search(
        self,
        *,
        status: Optional[str] = None,
        is_featured: Optional[bool] = None,
        category_slug: Optional[str] = None,
        search: Optional[str] = None,
        language: Optional[str] = None,
        sort_column: Any = None,
        descending: bool = True,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Product], int]:
        """
        Filter non-deleted products.
        Returns (products, total_count) tuple.
        """
        base_query = select(Product).where(Product.deleted_at.is_(None))

        if status:
            base_query = base_query.where(Product.status == status)
        if is_featured is not None:
            base_query = base_query.where(Product.is_featured.is_(is_featured))
        if category_slug:
            base_query = base_query.where(Product.categories.any(Category.slug == category_slug))
        if search:
            pattern = f"%{search.lower()}%"
            translation_match = or_(
                func.lower(ProductTranslation.name).like(pattern),
                func.lower(ProductTranslation.description).like(pattern),
            )
            if language:
                translation_match = translation_match & (ProductTranslation.language == language)
            base_query = base_query.where(Product.translations.any(translation_match))

        column = sort_column if sort_column is not None else Product.created_at
        order = column.desc() if descending else column.asc()
        return await self.paginate(
            base_query,
            skip=skip,
            limit=limit,
            order_by=[order, Product.id],
        )

    async def count_by_status(self, status: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Product)
            .where(Product.status == status, Product.deleted_at.is_(None))
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(Product.id).where(Product.slug == slug)
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def set_sort_orders(self, orders: list[tuple[str, int]]) -> None:
        for product_id, sort_order in orders:
            await self.session.execute(
                update(Product).where(Product.id == product_id).values(sort_order=sort_order)
            )
        await self.session.flush()

    async def draft_active_for_origin(self, supplier_id: str) -> int:
        """Force ACTIVE products shipped from a supplier back to DRAFT."""
        stmt = (
            update(Product)
            .where(
                Product.shipping_origin_id == supplier_id,
                Product.status == ProductStatus.ACTIVE.value,
            )
            .values(status=ProductStatus.DRAFT.value)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0


class VariantRepository(BaseRepository[ProductVariant]):
    """Repository for ProductVariant model operations."""

    model = ProductVariant

    async def get_active(self, variant_id: str) -> Optional[ProductVariant]:
        stmt = select(ProductVariant).where(
            ProductVariant.id == variant_id,
            ProductVariant.deleted_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many_active(self, variant_ids: list[str]) -> list[ProductVariant]:
        """Variants that are not deleted and whose product is not deleted."""
        if not variant_ids:
            return []
        stmt = (
            select(ProductVariant)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                ProductVariant.id.in_(variant_ids),
                ProductVariant.deleted_at.is_(None),
                Product.deleted_at.is_(None),
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_product(self, product_id: str) -> list[ProductVariant]:
        stmt = (
            select(ProductVariant)
            .where(
                ProductVariant.product_id == product_id,
                ProductVariant.deleted_at.is_(None),
            )
            .order_by(ProductVariant.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def sku_exists(self, sku: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(ProductVariant.id).where(ProductVariant.sku == sku)
        if exclude_id:
            stmt = stmt.where(ProductVariant.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.first() is not None


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category model operations."""

    model = Category

    async def list_categories(self, *, include_inactive: bool = False) -> list[Category]:
        stmt = select(Category)
        if not include_inactive:
            stmt = stmt.where(Category.is_active.is_(True))
        stmt = stmt.order_by(Category.sort_order, Category.slug)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_slug(self, slug: str) -> Optional[Category]:
        stmt = select(Category).where(Category.slug == slug)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, category_ids: list[str]) -> list[Category]:
        if not category_ids:
            return []
        stmt = select(Category).where(Category.id.in_(category_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_products(self, category_id: str, *, status: Optional[str] = None) -> list[Product]:
        stmt = select(Product).where(
            Product.categories.any(Category.id == category_id),
            Product.deleted_at.is_(None),
        )
        if status:
            stmt = stmt.where(Product.status == status)
        stmt = stmt.order_by(Product.sort_order, Product.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
