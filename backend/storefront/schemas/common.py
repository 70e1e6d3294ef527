"""
Small request/response schemas shared by several routers.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.models.user import UserRole


class UserResponse(BaseModel):
    id: str
    clerk_id: str = Field(alias="clerkId")
    email: str
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    role: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class UserDetailResponse(UserResponse):
    order_count: int = Field(0, alias="orderCount")
    total_spent: float = Field(0, alias="totalSpent")


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    limit: int
    stats: Optional[dict[str, int]] = None


class UserRoleUpdate(BaseModel):
    role: UserRole


class ShippingItemInput(BaseModel):
    variant_id: str = Field(..., alias="variantId")
    quantity: int = Field(..., ge=1)

    model_config = ConfigDict(populate_by_name=True)


class ShippingRatesRequest(BaseModel):
    cart_id: Optional[str] = Field(None, alias="cartId")
    address_to: dict[str, Any] = Field(..., alias="addressTo")
    items: Optional[list[ShippingItemInput]] = None

    model_config = ConfigDict(populate_by_name=True)


class AnalyticsEventRequest(BaseModel):
    event_type: str = Field("", alias="eventType", max_length=100)
    event_name: Optional[str] = Field(None, alias="eventName", max_length=255)
    path: Optional[str] = Field(None, max_length=2048)
    anonymous_id: Optional[str] = Field(None, alias="anonymousId", max_length=255)
    referrer: Optional[str] = Field(None, max_length=2048)
    metadata: Optional[dict[str, Any]] = None
    utm_source: Optional[str] = Field(None, alias="utmSource", max_length=255)
    utm_medium: Optional[str] = Field(None, alias="utmMedium", max_length=255)
    utm_campaign: Optional[str] = Field(None, alias="utmCampaign", max_length=255)

    model_config = ConfigDict(populate_by_name=True)


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    subject: Optional[str] = Field(None, max_length=300)
    message: str = Field(..., min_length=10, max_length=5000)
