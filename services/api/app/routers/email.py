from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.order_v1 import OrderConfirmationEmailV1
from services.api.app.db.deps import get_db, get_user_id
from services.api.app.db.models import Order
from services.api.app.errors import ApiError
from services.api.app.logger import get_logger
from services.api.app.services.event_log import log_event
from services.api.app.services.notification import MailerError, get_mailer
from sqlalchemy.orm import Session

router = APIRouter()
logger = get_logger(__name__)


@router.post("/v1/email/order-confirmation", status_code=202)
def send_order_confirmation(
    payload: OrderConfirmationEmailV1,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
) -> dict:
    order = db.get(Order, payload.order_id)
    if order is None or order.user_id != user_id:
        raise ApiError(404, "Order not found")

    try:
        mailer = get_mailer()
    except ValueError as e:
        raise ApiError(500, "Mailer misconfigured", str(e)) from e

    try:
        message_id = mailer.send_order_confirmation(payload)
    except MailerError as e:
        # The order stands; only the notification is recorded as failed.
        log_event(
            db,
            user_id=user_id,
            transaction_id=order.transaction_id,
            entity_type=EntityTypeV1.NOTIFICATION,
            entity_id=order.id,
            event_type=EventTypeV1.ORDER_CONFIRMATION_FAILED,
            event_payload={"error": str(e)},
        )
        db.commit()
        logger.warning("order_confirmation_failed", order_id=order.id, error=str(e))
        raise ApiError(502, "Confirmation email could not be sent", str(e)) from e

    log_event(
        db,
        user_id=user_id,
        transaction_id=order.transaction_id,
        entity_type=EntityTypeV1.NOTIFICATION,
        entity_id=order.id,
        event_type=EventTypeV1.ORDER_CONFIRMATION_SENT,
        event_payload={"message_id": message_id, "mailer": mailer.name},
    )
    db.commit()
    return {"status": "sent", "message_id": message_id}
