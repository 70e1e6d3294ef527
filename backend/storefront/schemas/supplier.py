"""
Logistics location (supplier) schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from storefront.models.supplier import Incoterm, SupplierType


class LocationAddress(BaseModel):
    name: Optional[str] = None
    street1: str = Field(..., min_length=1)
    street2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    zip: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2, max_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator("country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: SupplierType = SupplierType.LOCAL_STOCK
    incoterm: Incoterm = Incoterm.DDU
    address: LocationAddress


class LocationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[SupplierType] = None
    incoterm: Optional[Incoterm] = None
    address: Optional[LocationAddress] = None


class LocationResponse(BaseModel):
    id: str
    name: str
    type: str
    incoterm: str
    address: dict
    is_active: bool = Field(alias="isActive")
    default_currency: str = Field(alias="defaultCurrency")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class DeactivateLocationResponse(BaseModel):
    success: bool
    affected_products_count: int = Field(alias="affectedProductsCount")

    model_config = ConfigDict(populate_by_name=True)
