"""Shared checkout view schema (v1).

Storefront clients render the checkout button and its surrounding message from
these payloads, so the disabled/enabled decision is made in one place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class CheckoutStateV1(str, Enum):
    IDLE = "IDLE"
    CALCULATING = "CALCULATING"
    READY = "READY"
    CALCULATION_ERROR = "CALCULATION_ERROR"
    AUTHORIZING = "AUTHORIZING"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"
    COMMIT_FAILED_AFTER_PAYMENT = "COMMIT_FAILED_AFTER_PAYMENT"


class CheckoutActionTypeV1(str, Enum):
    PROCEED_TO_PAYMENT = "PROCEED_TO_PAYMENT"
    REFRESH = "REFRESH"
    RETRY = "RETRY"
    CONTACT_SUPPORT = "CONTACT_SUPPORT"
    VIEW_RECEIPT = "VIEW_RECEIPT"


class CheckoutActionV1(BaseModel):
    type: CheckoutActionTypeV1
    label: str
    payload: dict[str, Any] = Field(default_factory=dict)


class CheckoutViewV1(BaseModel):
    version: str = "1"
    state: CheckoutStateV1

    # Checkout button.
    checkout_enabled: bool
    checkout_label: str

    message: str | None = None
    severity: str = "info"

    currency: str = "ILS"
    subtotal_before_discount_cents: int | None = None
    discount_cents: int | None = None
    discount_percentage: float | None = None
    total_cents: int | None = None

    order_id: str | None = None
    transaction_id: str | None = None

    actions: list[CheckoutActionV1] = Field(default_factory=list, max_length=4)
