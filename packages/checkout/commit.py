from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from packages.checkout.authorization import PaymentAttempt, PaymentStatus
from packages.checkout.errors import (
    CheckoutError,
    CommitFailedAfterPayment,
    EndpointRejectedError,
    ErrorKind,
    NetworkError,
)
from packages.checkout.failure_log import FailureLogger
from packages.shared.schemas.order_v1 import (
    DeliveryTypeV1,
    OrderCreateRequestV1,
    OrderCreateResponseV1,
    OrderItemV1,
    OrderMetadataV1,
    ShippingAddressV1,
)

logger = structlog.get_logger(__name__)


class OrderEndpoint(Protocol):
    async def create_order(self, request: OrderCreateRequestV1) -> OrderCreateResponseV1: ...


@dataclass(frozen=True, slots=True)
class CommittedOrder:
    order_id: str
    transaction_id: str
    order: OrderCreateRequestV1


class OrderCommitStep:
    def __init__(self, orders: OrderEndpoint, failures: FailureLogger) -> None:
        self._orders = orders
        self._failures = failures

    async def commit(
        self,
        attempt: PaymentAttempt,
        items: list[OrderItemV1],
        shipping_address: ShippingAddressV1 | None,
        delivery_type: DeliveryTypeV1,
    ) -> CommittedOrder:
        """Create the order for an authorized payment.

        The payment has already gone through, so every failure here is logged with
        the real transaction id and surfaces as CommitFailedAfterPayment.
        """

        if attempt.status != PaymentStatus.AUTHORIZED or not attempt.transaction_id:
            raise ValueError(f"Cannot commit a payment attempt in status {attempt.status.value}")

        txn = attempt.transaction_id
        order = build_order(attempt, items, shipping_address, delivery_type)
        order_data = order.model_dump(mode="json")

        problem = _total_problem(attempt, order)
        if problem is not None:
            await self._failures.log_failure(
                txn, order_data, ErrorKind.ORDER_TOTAL_MISMATCH, problem,
                amount_cents=attempt.amount_cents,
            )
            raise CommitFailedAfterPayment(txn, ErrorKind.ORDER_TOTAL_MISMATCH)

        try:
            created = await self._orders.create_order(order)
        except CheckoutError as e:
            kind = _error_kind(e)
            await self._failures.log_failure(
                txn, order_data, kind, str(e), amount_cents=attempt.amount_cents
            )
            raise CommitFailedAfterPayment(txn, kind, cause=e) from e

        logger.info("order_committed", order_id=created.id, transaction_id=txn)
        return CommittedOrder(order_id=created.id, transaction_id=txn, order=order)


def build_order(
    attempt: PaymentAttempt,
    items: list[OrderItemV1],
    shipping_address: ShippingAddressV1 | None,
    delivery_type: DeliveryTypeV1,
) -> OrderCreateRequestV1:
    """Order payload priced from the confirmed pricing result, never recomputed."""

    priced = attempt.pricing_result
    return OrderCreateRequestV1(
        items=items,
        shipping_address=shipping_address if delivery_type == DeliveryTypeV1.DELIVERY else None,
        subtotal_before_discount_cents=priced.subtotal_before_discount_cents,
        subtotal_cents=priced.subtotal_cents,
        discount=priced.discount,
        tax_cents=priced.tax_cents,
        delivery_cost_cents=priced.delivery_cost_cents,
        total_cents=priced.total_cents,
        transaction_id=attempt.transaction_id or "",
        metadata=OrderMetadataV1(payment_method="credit_card", delivery_type=delivery_type),
    )


def _total_problem(attempt: PaymentAttempt, order: OrderCreateRequestV1) -> str | None:
    if order.total_cents != attempt.amount_cents:
        return f"Order total {order.total_cents} differs from authorized amount {attempt.amount_cents}"

    items_subtotal = sum(it.line_total_cents for it in order.items)
    if items_subtotal != order.subtotal_before_discount_cents:
        return (
            f"Items add up to {items_subtotal} but the priced subtotal was "
            f"{order.subtotal_before_discount_cents}"
        )

    return None


def _error_kind(e: CheckoutError) -> ErrorKind:
    if isinstance(e, EndpointRejectedError):
        return ErrorKind.ORDER_REJECTED
    if isinstance(e, NetworkError):
        return ErrorKind.ORDER_NETWORK_ERROR
    return ErrorKind.ORDER_MALFORMED_RESPONSE
