from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.db.deps import get_db
from services.api.app.db.models import EventLog, FailedOrder, Order, Payment
from services.api.app.errors import ApiError
from services.api.app.models.audit import ReconciliationView
from services.api.app.services.views import (
    event_out,
    failed_order_out,
    order_out,
    payment_out,
)
from sqlalchemy.orm import Session

router = APIRouter()


@router.get("/v1/reconciliation/{transaction_id}", response_model=ReconciliationView)
def get_reconciliation(transaction_id: str, db: Session = Depends(get_db)) -> ReconciliationView:
    payment = db.get(Payment, transaction_id)
    order = db.query(Order).filter(Order.transaction_id == transaction_id).first()

    failed = (
        db.query(FailedOrder)
        .filter(FailedOrder.transaction_id == transaction_id)
        .order_by(FailedOrder.created_at.desc())
        .all()
    )
    events = (
        db.query(EventLog)
        .filter(EventLog.transaction_id == transaction_id)
        .order_by(EventLog.created_at.asc())
        .all()
    )

    if payment is None and order is None and not failed:
        raise ApiError(404, "Transaction not found")

    paid_without_order = payment is not None and order is None
    unresolved = any(f.status == "pending" for f in failed)

    return ReconciliationView(
        transaction_id=transaction_id,
        payment=payment_out(payment) if payment else None,
        order=order_out(order) if order else None,
        failed_orders=[failed_order_out(f) for f in failed],
        events=[event_out(e) for e in events],
        needs_attention=paid_without_order or unresolved,
    )
