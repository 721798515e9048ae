"""Shared order schemas (v1): order creation, failed-order records, confirmation email."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from packages.shared.schemas.pricing_v1 import DiscountV1


class DeliveryTypeV1(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class OrderItemV1(BaseModel):
    product_id: str = ""
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price_cents: int = Field(..., ge=0)
    weight_kg: float = Field(0, ge=0)
    image: str = ""

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


class ShippingAddressV1(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "IL"


class OrderMetadataV1(BaseModel):
    payment_method: str = "credit_card"
    delivery_type: DeliveryTypeV1 = DeliveryTypeV1.DELIVERY


class OrderCreateRequestV1(BaseModel):
    items: list[OrderItemV1] = Field(..., min_length=1)
    shipping_address: ShippingAddressV1 | None = None

    subtotal_before_discount_cents: int = Field(..., ge=0)
    subtotal_cents: int = Field(..., ge=0)
    discount: DiscountV1 | None = None
    tax_cents: int = Field(0, ge=0)
    delivery_cost_cents: int = Field(0, ge=0)
    total_cents: int = Field(..., ge=0)

    transaction_id: str = Field(..., min_length=1)
    status: str = "new"
    metadata: OrderMetadataV1 = Field(default_factory=OrderMetadataV1)


class OrderCreateResponseV1(BaseModel):
    id: str
    message: str = "Order created successfully"


class FailedOrderStatusV1(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REFUNDED = "refunded"


class FailedOrderCreateV1(BaseModel):
    transaction_id: str = Field(..., min_length=1)
    order_data: dict[str, Any] = Field(default_factory=dict)
    error_kind: str
    error: str
    error_details: str | None = None
    amount_cents: int | None = None


class FailedOrderV1(FailedOrderCreateV1):
    id: str
    user_id: str | None = None
    status: FailedOrderStatusV1
    created_at: str
    updated_at: str


class FailedOrderStatusUpdateV1(BaseModel):
    status: FailedOrderStatusV1


class OrderConfirmationEmailV1(BaseModel):
    order_id: str
    transaction_id: str
    customer_email: str | None = None
    items: list[OrderItemV1] = Field(default_factory=list)
    total_cents: int = Field(..., ge=0)
    currency: str = "ILS"
    delivery_type: DeliveryTypeV1 = DeliveryTypeV1.DELIVERY
