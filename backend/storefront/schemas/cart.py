"""
Cart and checkout schemas.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class AddToCartRequest(BaseModel):
    variant_id: str = Field(..., alias="variantId", min_length=1)
    quantity: int = Field(1, ge=1, le=99)

    model_config = ConfigDict(populate_by_name=True)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=99)


class CalculateCartRequest(BaseModel):
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class DirectItem(BaseModel):
    variant_id: str = Field(..., alias="variantId")
    quantity: int = Field(..., ge=1, le=99)

    model_config = ConfigDict(populate_by_name=True)


class CreateIntentRequest(BaseModel):
    cart_id: Optional[str] = Field(None, alias="cartId")
    direct_item: Optional[DirectItem] = Field(None, alias="directItem")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    locale: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CreateIntentResponse(BaseModel):
    client_secret: Optional[str] = Field(None, alias="clientSecret")
    payment_intent_id: str = Field(alias="paymentIntentId")
    amount: float
    currency: str
    status: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ShippingDetails(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    street1: str = Field(..., min_length=1)
    street2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    zip: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2, max_length=2)


class UpdateIntentRequest(BaseModel):
    payment_intent_id: str = Field(..., alias="paymentIntentId")
    shipping_amount: Decimal = Field(..., alias="shippingAmount", ge=0)
    shipping_rate_id: Optional[str] = Field(None, alias="shippingRateId")
    shipping_details: Optional[ShippingDetails] = Field(None, alias="shippingDetails")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    model_config = ConfigDict(populate_by_name=True)


class UpdateIntentResponse(BaseModel):
    payment_intent_id: str = Field(alias="paymentIntentId")
    amount: float
    currency: str
    status: Optional[str] = None
    client_secret: Optional[str] = Field(None, alias="clientSecret")

    model_config = ConfigDict(populate_by_name=True)
