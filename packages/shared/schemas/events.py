"""Shared event schema (v1).

The storefront API stores an append-only event log per payment transaction.
Operators read it through the reconciliation endpoint.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    PAYMENT = "Payment"
    ORDER = "Order"
    FAILED_ORDER = "FailedOrder"
    NOTIFICATION = "Notification"


class EventTypeV1(str, Enum):
    PAYMENT_AUTHORIZED = "PAYMENT_AUTHORIZED"
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_REJECTED = "ORDER_REJECTED"
    FAILED_ORDER_RECORDED = "FAILED_ORDER_RECORDED"
    FAILED_ORDER_STATUS_CHANGED = "FAILED_ORDER_STATUS_CHANGED"
    ORDER_CONFIRMATION_SENT = "ORDER_CONFIRMATION_SENT"
    ORDER_CONFIRMATION_FAILED = "ORDER_CONFIRMATION_FAILED"


class EventV1(BaseModel):
    id: str
    user_id: str | None = None

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
