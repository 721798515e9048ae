from __future__ import annotations

import math
import os
from decimal import ROUND_HALF_UP, Decimal

from packages.shared.schemas.pricing_v1 import (
    DeliveryZoneV1,
    DiscountV1,
    PricingRequestV1,
    PricingResultV1,
    RateCardV1,
)
from services.api.app.services.discount import (
    DiscountEligibility,
    check_new_user_discount,
    discount_amount_cents,
)
from sqlalchemy.orm import Session

DELIVERY_ZONE_FEES_CENTS: dict[DeliveryZoneV1, int] = {
    DeliveryZoneV1.TELAVIV_NORTH: 6500,
    DeliveryZoneV1.JERUSALEM: 8500,
    DeliveryZoneV1.SOUTH: 8500,
    DeliveryZoneV1.WESTBANK: 8500,
}
FREE_DELIVERY_THRESHOLD_CENTS = 85_000
WESTBANK_FREE_DELIVERY_THRESHOLD_CENTS = 150_000
WEIGHT_STEP_KG = 30
MAX_DELIVERY_FEES = 2
VAT_PERCENTAGE = 18


def get_rate_card() -> RateCardV1:
    mode = os.getenv("STOREFRONT_RATE_CARD", RateCardV1.FLAT.value).strip().lower()
    try:
        return RateCardV1(mode)
    except ValueError:
        raise ValueError(f"Unknown STOREFRONT_RATE_CARD={mode!r}. Expected flat|zones.") from None


def zone_delivery_cost_cents(
    zone: DeliveryZoneV1 | None, total_weight_kg: float, subtotal_cents: int
) -> int:
    """One zone fee per started 30 kg, at most two, free above the zone's threshold.

    ``subtotal_cents`` is the discounted subtotal. No zone means pickup.
    """

    if zone is None:
        return 0

    threshold = (
        WESTBANK_FREE_DELIVERY_THRESHOLD_CENTS
        if zone == DeliveryZoneV1.WESTBANK
        else FREE_DELIVERY_THRESHOLD_CENTS
    )
    if subtotal_cents >= threshold:
        return 0

    fees = min(MAX_DELIVERY_FEES, max(1, math.ceil(total_weight_kg / WEIGHT_STEP_KG)))
    return DELIVERY_ZONE_FEES_CENTS[zone] * fees


def vat_cents(amount_cents: int) -> int:
    raw = Decimal(amount_cents) * VAT_PERCENTAGE / Decimal(100)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def price_request(
    request: PricingRequestV1,
    eligibility: DiscountEligibility,
    rate_card: RateCardV1 = RateCardV1.FLAT,
) -> PricingResultV1:
    """total = subtotal - discount + tax + delivery.

    Pure, so the same request, eligibility and rate card always price identically.
    Under the zones rate card delivery and VAT are computed here and whatever the
    request says about them is ignored.
    """

    discount: DiscountV1 | None = None
    if eligibility.eligible and eligibility.percentage > 0:
        amount = discount_amount_cents(request.subtotal_cents, eligibility.percentage)
        if amount > 0:
            discount = DiscountV1(percentage=eligibility.percentage, amount_cents=amount)

    discount_cents = discount.amount_cents if discount else 0
    subtotal_cents = request.subtotal_cents - discount_cents

    if rate_card == RateCardV1.ZONES:
        delivery_cents = zone_delivery_cost_cents(
            request.delivery_zone, request.total_weight_kg, subtotal_cents
        )
        tax_cents = vat_cents(subtotal_cents + delivery_cents)
    else:
        delivery_cents = request.delivery_cost_cents
        tax_cents = request.tax_cents

    return PricingResultV1(
        subtotal_before_discount_cents=request.subtotal_cents,
        subtotal_cents=subtotal_cents,
        discount=discount,
        tax_cents=tax_cents,
        delivery_cost_cents=delivery_cents,
        total_cents=subtotal_cents + tax_cents + delivery_cents,
        rate_card=rate_card,
    )


def price_for_user(db: Session, user_id: str, request: PricingRequestV1) -> PricingResultV1:
    return price_request(request, check_new_user_discount(db, user_id), get_rate_card())
