from __future__ import annotations

from uuid import uuid4

from services.api.app.services.gateway_base import AuthorizationResult, GatewayDeclinedError


class MockPaymentGateway:
    """Deterministic gateway for tests and local dev.

    Approves every amount up to ``decline_above_cents`` and echoes it back.
    """

    name = "MOCK"

    def __init__(self, decline_above_cents: int | None = None) -> None:
        self._decline_above_cents = decline_above_cents

    def authorize(self, *, user_id: str, amount_cents: int, currency: str) -> AuthorizationResult:
        del user_id

        if self._decline_above_cents is not None and amount_cents > self._decline_above_cents:
            raise GatewayDeclinedError("amount exceeds card limit")

        return AuthorizationResult(
            transaction_id=f"TXN-{uuid4().hex[:12].upper()}",
            amount_cents=amount_cents,
            currency=currency,
        )
