from __future__ import annotations

from pydantic import BaseModel, Field

from packages.shared.schemas.order_v1 import OrderItemV1, OrderMetadataV1, ShippingAddressV1
from packages.shared.schemas.pricing_v1 import DiscountV1


class PaymentOut(BaseModel):
    transaction_id: str
    user_id: str
    gateway: str
    status: str
    amount_cents: int
    currency: str
    created_at: str


class OrderOut(BaseModel):
    id: str
    user_id: str
    transaction_id: str
    status: str

    items: list[OrderItemV1] = Field(default_factory=list)
    shipping_address: ShippingAddressV1 | None = None

    subtotal_before_discount_cents: int
    discount: DiscountV1 | None = None
    subtotal_cents: int
    tax_cents: int
    delivery_cost_cents: int
    total_cents: int

    metadata: OrderMetadataV1
    created_at: str
