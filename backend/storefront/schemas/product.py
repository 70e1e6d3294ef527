"""
Catalog Pydantic schemas for request/response validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from storefront.core.i18n import Language
from storefront.models.catalog import ProductStatus


class Dimensions(BaseModel):
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class TranslationInput(BaseModel):
    language: Language
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, alias="shortDescription", max_length=500)
    meta_title: Optional[str] = Field(None, alias="metaTitle", max_length=255)
    meta_description: Optional[str] = Field(None, alias="metaDescription", max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class TranslationResponse(BaseModel):
    language: str
    name: str
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, alias="shortDescription")
    meta_title: Optional[str] = Field(None, alias="metaTitle")
    meta_description: Optional[str] = Field(None, alias="metaDescription")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PricingResponse(BaseModel):
    price: Decimal
    currency: str
    price_type: str = Field(alias="priceType")
    is_active: bool = Field(alias="isActive")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class InventoryResponse(BaseModel):
    stock: int
    reserved_stock: int = Field(alias="reservedStock")
    low_stock_threshold: int = Field(alias="lowStockThreshold")
    track_inventory: bool = Field(alias="trackInventory")
    allow_backorder: bool = Field(alias="allowBackorder")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class VariantResponse(BaseModel):
    id: str
    sku: str
    weight: Optional[Decimal] = None
    dimensions: Optional[dict] = None
    pricing: list[PricingResponse] = []
    inventory: Optional[InventoryResponse] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class MediaResponse(BaseModel):
    id: str
    url: str
    alt: Optional[str] = None
    is_primary: bool = Field(alias="isPrimary")
    sort_order: int = Field(alias="sortOrder")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class CategorySummary(BaseModel):
    id: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class ProductResponse(BaseModel):
    id: str
    slug: str
    status: str
    is_featured: bool = Field(alias="isFeatured")
    sort_order: int = Field(alias="sortOrder")
    origin_country: Optional[str] = Field(None, alias="originCountry")
    hs_code: Optional[str] = Field(None, alias="hsCode")
    export_explanation: Optional[str] = Field(None, alias="exportExplanation")
    weight: Optional[Decimal] = None
    dimensions: Optional[dict] = None
    shipping_origin_id: Optional[str] = Field(None, alias="shippingOriginId")
    translations: list[TranslationResponse] = []
    variants: list[VariantResponse] = Field(
        default=[],
        validation_alias=AliasChoices("active_variants", "variants"),
    )
    media: list[MediaResponse] = []
    categories: list[CategorySummary] = []
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    pagination: Pagination


class ProductCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    status: ProductStatus = ProductStatus.DRAFT
    is_featured: bool = Field(False, alias="isFeatured")
    sort_order: int = Field(0, alias="sortOrder")
    origin_country: Optional[str] = Field(None, alias="originCountry", min_length=2, max_length=2)
    hs_code: Optional[str] = Field(None, alias="hsCode")
    export_explanation: Optional[str] = Field(None, alias="exportExplanation")
    shipping_origin_id: Optional[str] = Field(None, alias="shippingOriginId")
    weight: Optional[Decimal] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None
    translations: list[TranslationInput] = Field(..., min_length=1)
    category_ids: list[str] = Field(default=[], alias="categoryIds")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("origin_country")
    @classmethod
    def upper_country(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class ProductUpdate(BaseModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    status: Optional[ProductStatus] = None
    is_featured: Optional[bool] = Field(None, alias="isFeatured")
    sort_order: Optional[int] = Field(None, alias="sortOrder")
    origin_country: Optional[str] = Field(None, alias="originCountry", min_length=2, max_length=2)
    hs_code: Optional[str] = Field(None, alias="hsCode")
    export_explanation: Optional[str] = Field(None, alias="exportExplanation")
    shipping_origin_id: Optional[str] = Field(None, alias="shippingOriginId")
    weight: Optional[Decimal] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None
    translations: Optional[list[TranslationInput]] = None
    category_ids: Optional[list[str]] = Field(None, alias="categoryIds")

    model_config = ConfigDict(populate_by_name=True)


class ReorderItem(BaseModel):
    id: str
    sort_order: int = Field(..., alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)


class ReorderRequest(BaseModel):
    items: list[ReorderItem] = Field(..., min_length=1)


class PriceInput(BaseModel):
    price: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class VariantCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    prices: list[PriceInput] = Field(..., min_length=1)
    stock: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, alias="lowStockThreshold", ge=0)
    track_inventory: bool = Field(True, alias="trackInventory")
    allow_backorder: bool = Field(False, alias="allowBackorder")
    weight: Optional[Decimal] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None

    model_config = ConfigDict(populate_by_name=True)


class VariantUpdate(BaseModel):
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    prices: Optional[list[PriceInput]] = None
    stock: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, alias="lowStockThreshold", ge=0)
    track_inventory: Optional[bool] = Field(None, alias="trackInventory")
    allow_backorder: Optional[bool] = Field(None, alias="allowBackorder")
    weight: Optional[Decimal] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None

    model_config = ConfigDict(populate_by_name=True)


class CategoryResponse(BaseModel):
    id: str
    slug: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = Field(None, alias="parentId")
    sort_order: int = Field(alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)


class CategoryDetailResponse(CategoryResponse):
    products: list[ProductResponse] = []
