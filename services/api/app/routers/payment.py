from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.payment_v1 import (
    PaymentAuthorizeRequestV1,
    PaymentAuthorizeResponseV1,
)
from packages.shared.schemas.pricing_v1 import PricingRequestV1
from services.api.app.db.deps import get_db, get_user_id
from services.api.app.db.models import Payment
from services.api.app.errors import ApiError
from services.api.app.logger import get_logger
from services.api.app.services.event_log import log_event
from services.api.app.services.gateway_base import (
    GatewayDeclinedError,
    GatewayError,
    GatewayUnavailableError,
)
from services.api.app.services.gateway_factory import get_payment_gateway
from services.api.app.services.pricing import price_for_user
from sqlalchemy.orm import Session

router = APIRouter()
logger = get_logger(__name__)

MIN_PAYMENT_CENTS = 100
MAX_PAYMENT_CENTS = 10_000_000


def _raise_gateway_http_error(e: Exception) -> None:
    if isinstance(e, GatewayDeclinedError):
        raise ApiError(402, "Payment declined", e.reason) from e

    if isinstance(e, GatewayUnavailableError):
        raise ApiError(502, "Payment gateway unavailable", e.detail) from e

    if isinstance(e, GatewayError):
        raise ApiError(502, "Payment processing failed", str(e)) from e

    raise ApiError(500, "Internal Server Error") from e


@router.post("/v1/payment/authorize", response_model=PaymentAuthorizeResponseV1)
def authorize_payment(
    payload: PaymentAuthorizeRequestV1,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
) -> PaymentAuthorizeResponseV1:
    if not MIN_PAYMENT_CENTS <= payload.amount_cents <= MAX_PAYMENT_CENTS:
        raise ApiError(400, "Invalid payment amount", f"amount_cents={payload.amount_cents}")

    # Never charge a client-computed amount: redo the pricing and compare.
    try:
        expected = price_for_user(
            db,
            user_id,
            PricingRequestV1(
                subtotal_cents=payload.subtotal_cents,
                tax_cents=payload.tax_cents,
                delivery_cost_cents=payload.delivery_cost_cents,
                delivery_zone=payload.delivery_zone,
                total_weight_kg=payload.total_weight_kg,
            ),
        )
    except ValueError as e:
        raise ApiError(500, "Pricing misconfigured", str(e)) from e

    if payload.delivery_cost_cents != expected.delivery_cost_cents:
        logger.warning(
            "delivery_cost_mismatch",
            user_id=user_id,
            client_delivery_cost_cents=payload.delivery_cost_cents,
            expected_delivery_cost_cents=expected.delivery_cost_cents,
            delivery_zone=payload.delivery_zone.value if payload.delivery_zone else None,
            total_weight_kg=payload.total_weight_kg,
        )
        raise ApiError(
            400,
            "Delivery cost mismatch",
            f"Delivery cost ({payload.delivery_cost_cents}) does not match calculated "
            f"delivery cost ({expected.delivery_cost_cents}). Please refresh and try again.",
        )

    if payload.amount_cents != expected.total_cents:
        logger.warning(
            "payment_amount_mismatch",
            user_id=user_id,
            client_amount_cents=payload.amount_cents,
            expected_amount_cents=expected.total_cents,
        )
        raise ApiError(
            400,
            "Payment amount mismatch",
            f"Payment amount ({payload.amount_cents}) does not match calculated total "
            f"({expected.total_cents}). Please refresh and try again.",
        )

    try:
        gateway = get_payment_gateway()
    except ValueError as e:
        raise ApiError(500, "Payment gateway misconfigured", str(e)) from e

    try:
        result = gateway.authorize(
            user_id=user_id, amount_cents=payload.amount_cents, currency=payload.currency
        )
    except Exception as e:
        logger.warning("payment_rejected", user_id=user_id, error=str(e))
        _raise_gateway_http_error(e)

    db.add(
        Payment(
            transaction_id=result.transaction_id,
            user_id=user_id,
            gateway=gateway.name,
            status="AUTHORIZED",
            amount_cents=result.amount_cents,
            currency=result.currency,
            pricing_payload_json=expected.model_dump(mode="json"),
        )
    )
    log_event(
        db,
        user_id=user_id,
        transaction_id=result.transaction_id,
        entity_type=EntityTypeV1.PAYMENT,
        entity_id=result.transaction_id,
        event_type=EventTypeV1.PAYMENT_AUTHORIZED,
        event_payload={
            "amount_cents": result.amount_cents,
            "currency": result.currency,
            "gateway": gateway.name,
        },
    )
    db.commit()

    logger.info(
        "payment_authorized",
        user_id=user_id,
        transaction_id=result.transaction_id,
        amount_cents=result.amount_cents,
    )

    return PaymentAuthorizeResponseV1(
        success=True,
        transaction_id=result.transaction_id,
        amount_cents=result.amount_cents,
        currency=result.currency,
        status="completed",
    )
