"""Shared pricing schema (v1).

All money values are integer minor units (cents). The pricing engine owns the
discount decision; clients only display it and forward the total to payment.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DeliveryZoneV1(str, Enum):
    TELAVIV_NORTH = "telaviv_north"
    JERUSALEM = "jerusalem"
    SOUTH = "south"
    WESTBANK = "westbank"


class RateCardV1(str, Enum):
    # Delivery and tax are taken from the request as sent.
    FLAT = "flat"
    # Delivery is priced by zone and weight and VAT is added, both server-side.
    ZONES = "zones"


class PricingRequestV1(BaseModel):
    # Frozen so a snapshot can be compared with the previously sent one.
    model_config = ConfigDict(frozen=True)

    subtotal_cents: int = Field(..., ge=0)
    tax_cents: int = Field(0, ge=0)
    delivery_cost_cents: int = Field(0, ge=0)

    # Read by the zones rate card only. No zone means pickup.
    delivery_zone: DeliveryZoneV1 | None = None
    total_weight_kg: float = Field(0, ge=0)


class DiscountV1(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: float = Field(..., gt=0, le=100)
    amount_cents: int = Field(..., ge=0)
    type: str = "new_user"


class PricingResultV1(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal_before_discount_cents: int = Field(..., ge=0)
    subtotal_cents: int = Field(..., ge=0)
    discount: DiscountV1 | None = None
    tax_cents: int = Field(..., ge=0)
    delivery_cost_cents: int = Field(..., ge=0)
    total_cents: int = Field(..., ge=0)
    rate_card: RateCardV1 = RateCardV1.FLAT

    @model_validator(mode="after")
    def _check_totals(self) -> "PricingResultV1":
        discount_cents = self.discount.amount_cents if self.discount else 0
        expected_subtotal = self.subtotal_before_discount_cents - discount_cents
        if self.subtotal_cents != expected_subtotal:
            raise ValueError(
                f"subtotal_cents={self.subtotal_cents} does not equal "
                f"subtotal_before_discount_cents - discount ({expected_subtotal})"
            )

        expected_total = expected_subtotal + self.tax_cents + self.delivery_cost_cents
        if self.total_cents != expected_total:
            raise ValueError(
                f"total_cents={self.total_cents} does not equal "
                f"subtotal - discount + tax + delivery ({expected_total})"
            )
        return self

    @property
    def discount_cents(self) -> int:
        return self.discount.amount_cents if self.discount else 0
