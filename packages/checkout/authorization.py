from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import structlog

from packages.checkout.coordinator import DiscountRequestCoordinator
from packages.checkout.errors import (
    AmountMismatchError,
    AuthorizationFailedError,
    CheckoutError,
    CheckoutNotReadyError,
    EndpointRejectedError,
    ErrorKind,
    MalformedResponseError,
    NetworkError,
)
from packages.checkout.failure_log import FailureLogger
from packages.shared.schemas.payment_v1 import (
    PaymentAuthorizeRequestV1,
    PaymentAuthorizeResponseV1,
)
from packages.shared.schemas.pricing_v1 import PricingRequestV1, PricingResultV1

logger = structlog.get_logger(__name__)


class PaymentEndpoint(Protocol):
    async def authorize_payment(
        self, request: PaymentAuthorizeRequestV1
    ) -> PaymentAuthorizeResponseV1: ...


class PaymentStatus(str, Enum):
    AUTHORIZED = "AUTHORIZED"
    REJECTED = "REJECTED"
    NETWORK_FAILED = "NETWORK_FAILED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


@dataclass(frozen=True, slots=True)
class PaymentAttempt:
    amount_cents: int
    currency: str
    transaction_id: str | None
    status: PaymentStatus
    pricing_request: PricingRequestV1
    pricing_result: PricingResultV1


class PaymentAuthorizationStep:
    def __init__(
        self, payments: PaymentEndpoint, failures: FailureLogger, *, currency: str = "ILS"
    ) -> None:
        self._payments = payments
        self._failures = failures
        self._currency = currency

    async def authorize(self, coordinator: DiscountRequestCoordinator) -> PaymentAttempt:
        """Charge exactly the total the coordinator currently vouches for.

        Raises CheckoutNotReadyError, without logging a failure, when no usable
        total exists. Any other failure is logged and then raised.
        """

        if not coordinator.is_ready_for_payment():
            raise CheckoutNotReadyError(
                coordinator.not_ready_reason() or CheckoutNotReadyError.STILL_CALCULATING
            )

        state = coordinator.state
        assert state.request is not None and state.result is not None
        request, result = state.request, state.result

        payload = PaymentAuthorizeRequestV1(
            amount_cents=result.total_cents,
            currency=self._currency,
            subtotal_cents=result.subtotal_before_discount_cents,
            tax_cents=result.tax_cents,
            delivery_cost_cents=result.delivery_cost_cents,
            delivery_zone=request.delivery_zone,
            total_weight_kg=request.total_weight_kg,
        )

        try:
            response = await self._payments.authorize_payment(payload)
            transaction_id = _confirmed_transaction(payload, response)
        except CheckoutError as e:
            error, kind, status = _classify(e)
            await self._failures.log_failure(
                getattr(e, "transaction_id", None),
                {
                    "pricing_request": request.model_dump(mode="json"),
                    "pricing_result": result.model_dump(mode="json"),
                    "currency": self._currency,
                    "payment_status": status.value,
                },
                kind,
                str(e),
                amount_cents=payload.amount_cents,
            )
            if error is e:
                raise
            raise error from e

        logger.info(
            "payment_authorized",
            transaction_id=transaction_id,
            amount_cents=payload.amount_cents,
            currency=self._currency,
        )
        return PaymentAttempt(
            amount_cents=payload.amount_cents,
            currency=self._currency,
            transaction_id=transaction_id,
            status=PaymentStatus.AUTHORIZED,
            pricing_request=request,
            pricing_result=result,
        )


def _confirmed_transaction(
    sent: PaymentAuthorizeRequestV1, response: PaymentAuthorizeResponseV1
) -> str:
    if not response.success:
        raise AuthorizationFailedError("Payment was not approved", details=response.status)

    if not response.transaction_id:
        raise MalformedResponseError("Authorization response has no transaction id")

    if response.amount_cents != sent.amount_cents:
        raise AmountMismatchError(
            sent.amount_cents, response.amount_cents, transaction_id=response.transaction_id
        )

    return response.transaction_id


def _classify(e: CheckoutError) -> tuple[CheckoutError, ErrorKind, PaymentStatus]:
    """Error to raise, failure kind to log, and where the payment attempt ended."""

    if isinstance(e, AmountMismatchError):
        return e, ErrorKind.PAYMENT_AMOUNT_MISMATCH, PaymentStatus.MALFORMED_RESPONSE

    if isinstance(e, EndpointRejectedError):
        failed = AuthorizationFailedError(
            e.error, status_code=e.status_code, details=e.details
        )
        return failed, ErrorKind.PAYMENT_DECLINED, PaymentStatus.REJECTED

    if isinstance(e, AuthorizationFailedError):
        return e, ErrorKind.PAYMENT_DECLINED, PaymentStatus.REJECTED

    if isinstance(e, NetworkError):
        return e, ErrorKind.PAYMENT_NETWORK_ERROR, PaymentStatus.NETWORK_FAILED

    return e, ErrorKind.PAYMENT_MALFORMED_RESPONSE, PaymentStatus.MALFORMED_RESPONSE
