"""
Order Pydantic schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.order import OrderStatus


class OrderItemResponse(BaseModel):
    id: str
    variant_id: Optional[str] = Field(None, alias="variantId")
    product_id: Optional[str] = Field(None, alias="productId")
    product_snapshot: dict = Field(default={}, alias="productSnapshot")
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")
    total_price: Decimal = Field(alias="totalPrice")
    currency: str

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PaymentResponse(BaseModel):
    id: str
    amount: Decimal
    currency: str
    method: str
    external_id: Optional[str] = Field(None, alias="externalId")
    status: str
    processed_at: Optional[datetime] = Field(None, alias="processedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ShipmentResponse(BaseModel):
    id: str
    carrier: Optional[str] = None
    carrier_service: Optional[str] = Field(None, alias="carrierService")
    tracking_code: Optional[str] = Field(None, alias="trackingCode")
    tracking_url: Optional[str] = Field(None, alias="trackingUrl")
    label_url: Optional[str] = Field(None, alias="labelUrl")
    status: str
    shipped_at: Optional[datetime] = Field(None, alias="shippedAt")
    delivered_at: Optional[datetime] = Field(None, alias="deliveredAt")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class StatusHistoryResponse(BaseModel):
    status: str
    comment: Optional[str] = None
    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class OrderSummary(BaseModel):
    id: str
    order_number: str = Field(alias="orderNumber")
    status: str
    currency: str
    total_amount: Decimal = Field(alias="totalAmount")
    order_email: Optional[str] = Field(None, alias="orderEmail")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class OrderResponse(OrderSummary):
    user_id: Optional[str] = Field(None, alias="userId")
    subtotal_amount: Decimal = Field(alias="subtotalAmount")
    tax_amount: Decimal = Field(alias="taxAmount")
    shipping_amount: Decimal = Field(alias="shippingAmount")
    discount_amount: Decimal = Field(alias="discountAmount")
    shipping_address: dict = Field(default={}, alias="shippingAddress")
    billing_address: dict = Field(default={}, alias="billingAddress")
    language: str
    utm_source: Optional[str] = Field(None, alias="utmSource")
    items: list[OrderItemResponse] = []
    payments: list[PaymentResponse] = []
    shipments: list[ShipmentResponse] = []
    status_history: list[StatusHistoryResponse] = Field(default=[], alias="statusHistory")
    updated_at: datetime = Field(alias="updatedAt")


class OrderListResponse(BaseModel):
    orders: list[OrderSummary]
    total: int
    page: int
    limit: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    comment: Optional[str] = Field(None, max_length=1000)


class RefundRequest(BaseModel):
    """Admin refund; amount omitted means a full refund."""

    amount: Optional[Decimal] = Field(None, gt=0)
    reason: Optional[Literal["duplicate", "fraudulent", "requested_by_customer"]] = None


class RefundResult(BaseModel):
    success: bool
    refund_id: Optional[str] = Field(None, alias="refundId")
    amount: float
    currency: str
    status: Optional[str] = None
    processed_at: str = Field(alias="processedAt")

    model_config = ConfigDict(populate_by_name=True)


class CustomerRefundRequest(BaseModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    reason: str = Field(..., min_length=1, max_length=2000)
    type: Optional[Literal["CANCELLATION", "REFUND"]] = None

    model_config = ConfigDict(populate_by_name=True)


class PurchaseLabelRequest(BaseModel):
    rate_id: Optional[str] = Field(None, alias="rateId")

    model_config = ConfigDict(populate_by_name=True)
