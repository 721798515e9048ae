from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.pricing_v1 import PricingRequestV1, PricingResultV1
from services.api.app.db.deps import get_db, get_user_id
from services.api.app.errors import ApiError
from services.api.app.logger import get_logger
from services.api.app.services.pricing import price_for_user
from sqlalchemy.orm import Session

router = APIRouter()
logger = get_logger(__name__)


@router.post("/v1/pricing/calculate-total", response_model=PricingResultV1)
def calculate_total(
    payload: PricingRequestV1,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
) -> PricingResultV1:
    try:
        result = price_for_user(db, user_id, payload)
    except ValueError as e:
        raise ApiError(500, "Pricing misconfigured", str(e)) from e

    logger.info(
        "pricing_calculated",
        user_id=user_id,
        rate_card=result.rate_card.value,
        delivery_zone=payload.delivery_zone.value if payload.delivery_zone else None,
        subtotal_before_discount_cents=result.subtotal_before_discount_cents,
        discount_cents=result.discount_cents,
        tax_cents=result.tax_cents,
        delivery_cost_cents=result.delivery_cost_cents,
        total_cents=result.total_cents,
    )
    return result
