from __future__ import annotations

import os

from services.api.app.services.gateway_base import PaymentGateway
from services.api.app.services.gateway_mock import MockPaymentGateway


def get_payment_gateway() -> PaymentGateway:
    """Select a gateway based on env vars.

    Only the mock gateway ships here; real gateway integrations plug in behind the
    same Protocol.
    """

    mode = os.getenv("STOREFRONT_PAYMENT_GATEWAY", "mock").strip().lower()

    if mode == "mock":
        limit = os.getenv("STOREFRONT_MOCK_GATEWAY_DECLINE_ABOVE_CENTS", "").strip()
        return MockPaymentGateway(decline_above_cents=int(limit) if limit else None)

    raise ValueError(f"Unknown STOREFRONT_PAYMENT_GATEWAY={mode!r}. Expected mock.")
