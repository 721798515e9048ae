from __future__ import annotations

from pydantic import BaseModel, Field

from packages.shared.schemas.events import EventV1
from packages.shared.schemas.order_v1 import FailedOrderV1
from services.api.app.models.order import OrderOut, PaymentOut


class ReconciliationView(BaseModel):
    """Everything known about one transaction, for manual refund or order repair."""

    transaction_id: str

    payment: PaymentOut | None = None
    order: OrderOut | None = None
    failed_orders: list[FailedOrderV1] = Field(default_factory=list)
    events: list[EventV1] = Field(default_factory=list)

    # Paid without an order, or an unresolved failure record.
    needs_attention: bool = False
