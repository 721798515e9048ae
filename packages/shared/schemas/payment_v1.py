"""Shared payment authorization schema (v1)."""

from __future__ import annotations

from pydantic import BaseModel, Field

from packages.shared.schemas.pricing_v1 import DeliveryZoneV1


class PaymentAuthorizeRequestV1(BaseModel):
    amount_cents: int = Field(..., ge=0)
    currency: str = Field("ILS", min_length=3, max_length=3)

    # Pre-discount subtotal, so the server can redo the calculation itself.
    subtotal_cents: int = Field(..., ge=0)
    tax_cents: int = Field(0, ge=0)
    delivery_cost_cents: int = Field(0, ge=0)
    delivery_zone: DeliveryZoneV1 | None = None
    total_weight_kg: float = Field(0, ge=0)


class PaymentAuthorizeResponseV1(BaseModel):
    success: bool
    transaction_id: str | None = None
    amount_cents: int | None = None
    currency: str | None = None
    status: str | None = None


class ErrorResponseV1(BaseModel):
    success: bool = False
    error: str
    details: str | None = None
