from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

import structlog

from packages.checkout.errors import ErrorKind
from packages.shared.schemas.order_v1 import FailedOrderCreateV1

logger = structlog.get_logger(__name__)

PLACEHOLDER_TXN_PREFIX = "NO-TXN-"

_SUMMARIES: dict[ErrorKind, str] = {
    ErrorKind.PAYMENT_DECLINED: "Payment was declined",
    ErrorKind.PAYMENT_AMOUNT_MISMATCH: "Authorized amount differs from the requested amount",
    ErrorKind.PAYMENT_NETWORK_ERROR: "Payment request did not complete",
    ErrorKind.PAYMENT_MALFORMED_RESPONSE: "Payment response could not be read",
    ErrorKind.ORDER_REJECTED: "Order creation was rejected after payment",
    ErrorKind.ORDER_NETWORK_ERROR: "Order creation did not complete after payment",
    ErrorKind.ORDER_MALFORMED_RESPONSE: "Order creation response could not be read after payment",
    ErrorKind.ORDER_TOTAL_MISMATCH: "Order total differs from the authorized amount",
}


class FailureSink(Protocol):
    async def record_failed_order(self, record: FailedOrderCreateV1) -> str: ...


@dataclass(frozen=True, slots=True)
class FailedOrderRecord:
    transaction_id: str
    order_data: dict[str, Any]
    error_kind: ErrorKind
    error: str
    error_details: str | None
    amount_cents: int | None
    timestamp: datetime
    # Server-side id, when the sink accepted the record.
    remote_id: str | None = None

    @property
    def requires_support(self) -> bool:
        return self.error_kind.requires_support


class FailureLogger:
    """Records failed payment/order attempts for manual reconciliation.

    Every failure produces a local structured log line first and then one
    attempt at the remote failed-order sink. Nothing here ever raises: a broken
    sink must not replace the error the shopper actually needs to see.
    """

    def __init__(self, sink: FailureSink, *, sink_timeout_s: float | None = None) -> None:
        self._sink = sink
        self._sink_timeout_s = sink_timeout_s

    async def log_failure(
        self,
        transaction_id: str | None,
        attempted_order_data: dict[str, Any],
        error_kind: ErrorKind,
        error_detail: str,
        *,
        amount_cents: int | None = None,
    ) -> FailedOrderRecord:
        txn = transaction_id or f"{PLACEHOLDER_TXN_PREFIX}{uuid4().hex[:12].upper()}"
        record = FailedOrderRecord(
            transaction_id=txn,
            order_data=attempted_order_data,
            error_kind=error_kind,
            error=_SUMMARIES[error_kind],
            error_details=error_detail,
            amount_cents=amount_cents,
            timestamp=datetime.now(timezone.utc),
        )

        logger.error(
            "checkout_failure",
            transaction_id=txn,
            error_kind=error_kind.value,
            error=record.error,
            error_details=error_detail,
            amount_cents=amount_cents,
            requires_support=record.requires_support,
            order_data=attempted_order_data,
        )

        payload = FailedOrderCreateV1(
            transaction_id=txn,
            order_data=attempted_order_data,
            error_kind=error_kind.value,
            error=record.error,
            error_details=error_detail,
            amount_cents=amount_cents,
        )
        try:
            remote_id = await asyncio.wait_for(
                self._sink.record_failed_order(payload), timeout=self._sink_timeout_s
            )
        except Exception as e:
            logger.warning(
                "failed_order_sink_unavailable",
                transaction_id=txn,
                error_kind=error_kind.value,
                error=str(e),
            )
            return record

        return FailedOrderRecord(
            transaction_id=record.transaction_id,
            order_data=record.order_data,
            error_kind=record.error_kind,
            error=record.error,
            error_details=record.error_details,
            amount_cents=record.amount_cents,
            timestamp=record.timestamp,
            remote_id=remote_id,
        )
