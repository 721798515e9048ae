from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.order_v1 import (
    DeliveryTypeV1,
    OrderCreateRequestV1,
    OrderCreateResponseV1,
)
from packages.shared.schemas.pricing_v1 import PricingResultV1
from services.api.app.db.deps import get_db, get_user_id
from services.api.app.db.models import Order, Payment
from services.api.app.errors import ApiError
from services.api.app.logger import get_logger
from services.api.app.models.order import OrderOut
from services.api.app.services.event_log import log_event
from services.api.app.services.views import order_out
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

router = APIRouter()
logger = get_logger(__name__)


@router.post("/v1/orders/create", response_model=OrderCreateResponseV1, status_code=201)
def create_order(
    payload: OrderCreateRequestV1,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
) -> OrderCreateResponseV1:
    delivery_type = payload.metadata.delivery_type
    if delivery_type == DeliveryTypeV1.DELIVERY and payload.shipping_address is None:
        raise ApiError(400, "Complete delivery address is required for delivery orders")

    payment = db.get(Payment, payload.transaction_id)
    if payment is None or payment.user_id != user_id:
        raise ApiError(404, "Unknown transaction", payload.transaction_id)

    if payment.status != "AUTHORIZED":
        raise ApiError(409, "Payment is not authorized", f"status={payment.status}")

    existing = _existing_order(db, payment.transaction_id)
    if existing is not None:
        raise ApiError(409, "Transaction already used for an order", existing.id)

    problem = _totals_problem(payload, payment)
    if problem is not None:
        log_event(
            db,
            user_id=user_id,
            transaction_id=payment.transaction_id,
            entity_type=EntityTypeV1.PAYMENT,
            entity_id=payment.transaction_id,
            event_type=EventTypeV1.ORDER_REJECTED,
            event_payload={"reason": problem, "order_total_cents": payload.total_cents},
        )
        db.commit()
        logger.warning(
            "order_rejected",
            user_id=user_id,
            transaction_id=payment.transaction_id,
            reason=problem,
        )
        raise ApiError(409, "Order totals do not match the authorized payment", problem)

    order_id = uuid4().hex
    db.add(
        Order(
            id=order_id,
            user_id=user_id,
            transaction_id=payment.transaction_id,
            status=payload.status,
            items_json=[it.model_dump(mode="json") for it in payload.items],
            shipping_address_json=(
                payload.shipping_address.model_dump(mode="json")
                if delivery_type == DeliveryTypeV1.DELIVERY and payload.shipping_address
                else None
            ),
            subtotal_before_discount_cents=payload.subtotal_before_discount_cents,
            discount_cents=payload.discount.amount_cents if payload.discount else 0,
            discount_percentage=payload.discount.percentage if payload.discount else None,
            subtotal_cents=payload.subtotal_cents,
            tax_cents=payload.tax_cents,
            delivery_cost_cents=payload.delivery_cost_cents,
            total_cents=payload.total_cents,
            metadata_json=payload.metadata.model_dump(mode="json"),
        )
    )
    log_event(
        db,
        user_id=user_id,
        transaction_id=payment.transaction_id,
        entity_type=EntityTypeV1.ORDER,
        entity_id=order_id,
        event_type=EventTypeV1.ORDER_CREATED,
        event_payload={
            "total_cents": payload.total_cents,
            "delivery_type": delivery_type.value,
            "item_count": len(payload.items),
        },
    )
    try:
        db.commit()
    except IntegrityError as e:
        # A concurrent create for the same transaction won the unique constraint.
        db.rollback()
        logger.warning(
            "order_duplicate_transaction", user_id=user_id, transaction_id=payment.transaction_id
        )
        raise ApiError(409, "Transaction already used for an order", payment.transaction_id) from e

    logger.info(
        "order_created",
        user_id=user_id,
        order_id=order_id,
        transaction_id=payment.transaction_id,
        total_cents=payload.total_cents,
    )
    return OrderCreateResponseV1(id=order_id)


@router.get("/v1/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
) -> OrderOut:
    order = db.get(Order, order_id)
    if order is None or order.user_id != user_id:
        raise ApiError(404, "Order not found")
    return order_out(order)


def _existing_order(db: Session, transaction_id: str) -> Order | None:
    return db.query(Order).filter(Order.transaction_id == transaction_id).first()


def _totals_problem(payload: OrderCreateRequestV1, payment: Payment) -> str | None:
    """Compare the submitted totals with what was priced and charged at authorization."""

    if payload.total_cents != payment.amount_cents:
        return f"total_cents={payload.total_cents} but payment amount_cents={payment.amount_cents}"

    items_subtotal = sum(it.line_total_cents for it in payload.items)
    if items_subtotal != payload.subtotal_before_discount_cents:
        return (
            f"items add up to {items_subtotal} but "
            f"subtotal_before_discount_cents={payload.subtotal_before_discount_cents}"
        )

    priced = PricingResultV1.model_validate(payment.pricing_payload_json)
    submitted_discount = payload.discount.amount_cents if payload.discount else 0
    checks = (
        ("subtotal_before_discount_cents", payload.subtotal_before_discount_cents, priced.subtotal_before_discount_cents),
        ("discount_cents", submitted_discount, priced.discount_cents),
        ("subtotal_cents", payload.subtotal_cents, priced.subtotal_cents),
        ("tax_cents", payload.tax_cents, priced.tax_cents),
        ("delivery_cost_cents", payload.delivery_cost_cents, priced.delivery_cost_cents),
        ("total_cents", payload.total_cents, priced.total_cents),
    )
    for name, submitted, authorized in checks:
        if submitted != authorized:
            return f"{name}={submitted} but authorized pricing has {authorized}"

    return None
