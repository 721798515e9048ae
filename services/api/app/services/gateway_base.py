from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class GatewayError(Exception):
    """Base class for payment gateway errors."""


class GatewayDeclinedError(GatewayError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Payment declined: {reason}")
        self.reason = reason


class GatewayUnavailableError(GatewayError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Payment gateway unavailable: {detail}")
        self.detail = detail


@dataclass(frozen=True, slots=True)
class AuthorizationResult:
    transaction_id: str
    amount_cents: int
    currency: str


class PaymentGateway(Protocol):
    name: str

    def authorize(self, *, user_id: str, amount_cents: int, currency: str) -> AuthorizationResult: ...
