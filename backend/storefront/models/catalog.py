"""
Catalog models - products, variants, pricing, inventory, media and categories.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.core.database import Base, JSONType, new_id, utc_now

if TYPE_CHECKING:
    from storefront.models.supplier import Supplier


class ProductStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", String(36), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", String(36), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Product(Base):
    """Sellable product; names and descriptions live in translations."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ProductStatus.DRAFT.value,
        index=True,
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    # Customs
    origin_country: Mapped[Optional[str]] = mapped_column(String(2))
    hs_code: Mapped[Optional[str]] = mapped_column(String(20))
    export_explanation: Mapped[Optional[str]] = mapped_column(Text)

    # Default physical attributes (variants may override)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))
    dimensions: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    shipping_origin_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("suppliers.id", ondelete="SET NULL"),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    translations: Mapped[list["ProductTranslation"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    variants: Mapped[list["ProductVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductVariant.created_at",
    )
    media: Mapped[list["ProductMedia"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductMedia.sort_order",
    )
    categories: Mapped[list["Category"]] = relationship(
        secondary=product_categories,
        back_populates="products",
        lazy="selectin",
    )
    shipping_origin: Mapped[Optional["Supplier"]] = relationship(lazy="selectin")

    def get_translation(self, language: str) -> Optional["ProductTranslation"]:
        for translation in self.translations:
            if translation.language == language:
                return translation
        return self.translations[0] if self.translations else None

    def display_name(self, language: str, fallback: str = "") -> str:
        translation = self.get_translation(language)
        return translation.name if translation else fallback

    @property
    def primary_image(self) -> Optional[str]:
        for media in self.media:
            if media.is_primary:
                return media.url
        return self.media[0].url if self.media else None

    @property
    def active_variants(self) -> list["ProductVariant"]:
        return [v for v in self.variants if v.deleted_at is None]

    def __repr__(self) -> str:
        return f"<Product {self.slug}>"


class ProductTranslation(Base):
    __tablename__ = "product_translations"
    __table_args__ = (UniqueConstraint("product_id", "language", name="uq_product_translation_language"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    language: Mapped[str] = mapped_column(String(2), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    short_description: Mapped[Optional[str]] = mapped_column(String(500))
    meta_title: Mapped[Optional[str]] = mapped_column(String(255))
    meta_description: Mapped[Optional[str]] = mapped_column(String(500))

    product: Mapped["Product"] = relationship(back_populates="translations")


class ProductVariant(Base):
    """Purchasable SKU of a product."""

    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    sku: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))
    dimensions: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    product: Mapped["Product"] = relationship(back_populates="variants", lazy="selectin")
    pricing: Mapped[list["ProductPricing"]] = relationship(
        back_populates="variant",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    inventory: Mapped[Optional["ProductInventory"]] = relationship(
        back_populates="variant",
        cascade="all, delete-orphan",
        lazy="selectin",
        uselist=False,
    )

    @property
    def effective_weight(self) -> Optional[Decimal]:
        if self.weight is not None:
            return self.weight
        return self.product.weight if self.product else None

    @property
    def effective_dimensions(self) -> Optional[dict[str, Any]]:
        if self.dimensions:
            return self.dimensions
        return self.product.dimensions if self.product else None

    def __repr__(self) -> str:
        return f"<ProductVariant {self.sku}>"


class ProductPricing(Base):
    __tablename__ = "product_pricing"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    variant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        index=True,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    price_type: Mapped[str] = mapped_column(String(20), default="base")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    valid_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )

    variant: Mapped["ProductVariant"] = relationship(back_populates="pricing")


class ProductInventory(Base):
    __tablename__ = "product_inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    variant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        unique=True,
    )
    stock: Mapped[int] = mapped_column(Integer, default=0)
    reserved_stock: Mapped[int] = mapped_column(Integer, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=5)
    track_inventory: Mapped[bool] = mapped_column(Boolean, default=True)
    allow_backorder: Mapped[bool] = mapped_column(Boolean, default=False)

    variant: Mapped["ProductVariant"] = relationship(back_populates="inventory")

    @property
    def available_stock(self) -> int:
        return self.stock - self.reserved_stock


class ProductMedia(Base):
    __tablename__ = "product_media"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    variant_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("product_variants.id", ondelete="SET NULL"),
    )
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    alt: Mapped[Optional[str]] = mapped_column(String(255))
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="SET NULL"),
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )

    translations: Mapped[list["CategoryTranslation"]] = relationship(
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    products: Mapped[list["Product"]] = relationship(
        secondary=product_categories,
        back_populates="categories",
        lazy="raise",
    )

    def display_name(self, language: str) -> str:
        for translation in self.translations:
            if translation.language == language:
                return translation.name
        return self.translations[0].name if self.translations else self.slug


class CategoryTranslation(Base):
    __tablename__ = "category_translations"
    __table_args__ = (UniqueConstraint("category_id", "language", name="uq_category_translation_language"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="CASCADE"),
        index=True,
    )
    language: Mapped[str] = mapped_column(String(2), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
