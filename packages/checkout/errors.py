"""Checkout error taxonomy.

Calculation errors stay inside the checkout screen. Everything raised from
authorization or commit has already been recorded by the failure logger by the
time a caller sees it.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    PAYMENT_AMOUNT_MISMATCH = "PAYMENT_AMOUNT_MISMATCH"
    PAYMENT_NETWORK_ERROR = "PAYMENT_NETWORK_ERROR"
    PAYMENT_MALFORMED_RESPONSE = "PAYMENT_MALFORMED_RESPONSE"
    ORDER_REJECTED = "ORDER_REJECTED"
    ORDER_NETWORK_ERROR = "ORDER_NETWORK_ERROR"
    ORDER_MALFORMED_RESPONSE = "ORDER_MALFORMED_RESPONSE"
    ORDER_TOTAL_MISMATCH = "ORDER_TOTAL_MISMATCH"

    @property
    def requires_support(self) -> bool:
        # Money has moved for every ORDER_* kind.
        return self.value.startswith("ORDER_")


class CheckoutError(Exception):
    pass


class CalculationError(CheckoutError):
    """The pricing engine could not produce a usable total."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class CheckoutNotReadyError(CheckoutError):
    NOT_CALCULATED = "not_calculated"
    STILL_CALCULATING = "still_calculating"
    CALCULATION_FAILED = "calculation_failed"
    EMPTY_CART = "empty_cart"
    MISSING_ADDRESS = "missing_address"
    NEEDS_REFRESH = "needs_refresh"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Checkout is not ready: {reason}")
        self.reason = reason


class CheckoutInProgressError(CheckoutError):
    pass


class NetworkError(CheckoutError):
    """Timeout, connection failure or any other transport problem."""


class MalformedResponseError(CheckoutError):
    """A response body that does not parse, or parses to an inconsistent value."""


class EndpointRejectedError(CheckoutError):
    def __init__(self, status_code: int, error: str, details: str | None = None) -> None:
        super().__init__(f"HTTP {status_code}: {error}" + (f" ({details})" if details else ""))
        self.status_code = status_code
        self.error = error
        self.details = details


class AuthorizationFailedError(CheckoutError):
    def __init__(self, message: str, *, status_code: int | None = None, details: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AmountMismatchError(CheckoutError):
    def __init__(
        self,
        requested_cents: int,
        confirmed_cents: int | None,
        *,
        transaction_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Authorized amount {confirmed_cents} does not match requested amount {requested_cents}"
        )
        self.requested_cents = requested_cents
        self.confirmed_cents = confirmed_cents
        self.transaction_id = transaction_id


class CommitFailedAfterPayment(CheckoutError):
    """Payment went through but the order was not created. Needs support, never a retry."""

    def __init__(
        self,
        transaction_id: str,
        error_kind: ErrorKind,
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Order was not created for paid transaction {transaction_id} ({error_kind.value})"
        )
        self.transaction_id = transaction_id
        self.error_kind = error_kind
        self.cause = cause
