from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.order_v1 import (
    FailedOrderCreateV1,
    FailedOrderStatusUpdateV1,
    FailedOrderStatusV1,
    FailedOrderV1,
    OrderCreateResponseV1,
)
from services.api.app.db.deps import get_db, get_optional_user_id
from services.api.app.db.models import FailedOrder
from services.api.app.errors import ApiError
from services.api.app.logger import get_logger
from services.api.app.services.event_log import log_event
from services.api.app.services.views import failed_order_out
from sqlalchemy.orm import Session

router = APIRouter()
logger = get_logger(__name__)


@router.post("/v1/orders/failed", response_model=OrderCreateResponseV1, status_code=201)
def record_failed_order(
    payload: FailedOrderCreateV1,
    user_id: str | None = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
) -> OrderCreateResponseV1:
    failed_id = uuid4().hex
    db.add(
        FailedOrder(
            id=failed_id,
            transaction_id=payload.transaction_id,
            user_id=user_id,
            error_kind=payload.error_kind,
            error=payload.error,
            error_details=payload.error_details,
            amount_cents=payload.amount_cents,
            order_data_json=payload.order_data,
            status=FailedOrderStatusV1.PENDING.value,
        )
    )
    log_event(
        db,
        user_id=user_id,
        transaction_id=payload.transaction_id,
        entity_type=EntityTypeV1.FAILED_ORDER,
        entity_id=failed_id,
        event_type=EventTypeV1.FAILED_ORDER_RECORDED,
        event_payload={"error_kind": payload.error_kind, "error": payload.error},
    )
    db.commit()

    logger.warning(
        "failed_order_recorded",
        failed_order_id=failed_id,
        transaction_id=payload.transaction_id,
        error_kind=payload.error_kind,
    )
    return OrderCreateResponseV1(id=failed_id, message="Failed order recorded")


@router.get("/v1/orders/failed", response_model=list[FailedOrderV1])
def list_failed_orders(
    status: FailedOrderStatusV1 | None = None,
    db: Session = Depends(get_db),
) -> list[FailedOrderV1]:
    query = db.query(FailedOrder)
    if status is not None:
        query = query.filter(FailedOrder.status == status.value)

    rows = query.order_by(FailedOrder.created_at.desc()).limit(200).all()
    return [failed_order_out(r) for r in rows]


@router.patch("/v1/orders/failed/{failed_order_id}", response_model=FailedOrderV1)
def update_failed_order(
    failed_order_id: str,
    payload: FailedOrderStatusUpdateV1,
    user_id: str | None = Depends(get_optional_user_id),
    db: Session = Depends(get_db),
) -> FailedOrderV1:
    row = db.get(FailedOrder, failed_order_id)
    if row is None:
        raise ApiError(404, "Failed order not found")

    previous = row.status
    row.status = payload.status.value
    row.updated_at = datetime.now(timezone.utc)

    log_event(
        db,
        user_id=user_id,
        transaction_id=row.transaction_id,
        entity_type=EntityTypeV1.FAILED_ORDER,
        entity_id=row.id,
        event_type=EventTypeV1.FAILED_ORDER_STATUS_CHANGED,
        event_payload={"from": previous, "to": row.status},
    )
    db.commit()
    return failed_order_out(row)
