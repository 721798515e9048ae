"""Discount request coordinator.

Pricing calls can overlap: the shopper switches from delivery to pickup while
the delivery total is still in flight. Every call gets a token and only the
result carrying the most recently issued token may update state, so a late
answer to an old question can never become the amount that gets charged.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

import structlog

from packages.checkout.errors import CalculationError, CheckoutNotReadyError
from packages.shared.schemas.pricing_v1 import PricingRequestV1, PricingResultV1, RateCardV1

logger = structlog.get_logger(__name__)


class PricingSource(Protocol):
    async def calculate_total(self, request: PricingRequestV1) -> PricingResultV1: ...


class CalculationStatus(str, Enum):
    IDLE = "IDLE"
    CALCULATING = "CALCULATING"
    READY = "READY"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class CalculationState:
    status: CalculationStatus = CalculationStatus.IDLE
    latest_token: int = 0
    request: PricingRequestV1 | None = None

    result: PricingResultV1 | None = None
    result_token: int | None = None
    error: CalculationError | None = None


class DiscountRequestCoordinator:
    def __init__(self, pricing: PricingSource, *, debounce_s: float = 0.0) -> None:
        self._pricing = pricing
        self._debounce_s = debounce_s
        self._state = CalculationState()
        self._tasks: set[asyncio.Task[None]] = set()
        self._settled = asyncio.Event()
        self._settled.set()

    @property
    def state(self) -> CalculationState:
        return self._state

    def request_recalculation(
        self, request: PricingRequestV1, *, force: bool = False
    ) -> int | None:
        """Issue a new pricing call for ``request`` and return its token.

        Returns None without calling anything when ``request`` is the one already
        being calculated or already priced, unless ``force`` is set. Must be called
        from a running loop.
        """

        state = self._state
        if not force and request == state.request and state.status in (
            CalculationStatus.CALCULATING,
            CalculationStatus.READY,
        ):
            logger.debug("recalculation_deduplicated", token=state.latest_token)
            return None

        token = state.latest_token + 1
        self._state = replace(
            state,
            status=CalculationStatus.CALCULATING,
            latest_token=token,
            request=request,
            error=None,
        )
        self._settled.clear()

        task = asyncio.get_running_loop().create_task(self._run(token, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug(
            "recalculation_requested",
            token=token,
            subtotal_cents=request.subtotal_cents,
            delivery_cost_cents=request.delivery_cost_cents,
        )
        return token

    def is_ready_for_payment(self) -> bool:
        state = self._state
        return (
            state.status == CalculationStatus.READY
            and state.result is not None
            and state.result_token == state.latest_token
            and state.error is None
        )

    def not_ready_reason(self) -> str | None:
        if self.is_ready_for_payment():
            return None
        if self._state.status == CalculationStatus.ERROR:
            return CheckoutNotReadyError.CALCULATION_FAILED
        if self._state.status == CalculationStatus.IDLE:
            return CheckoutNotReadyError.NOT_CALCULATED
        return CheckoutNotReadyError.STILL_CALCULATING

    async def wait_until_settled(self, timeout_s: float | None = None) -> CalculationState:
        """Wait until the latest issued token has produced a result or an error."""

        await asyncio.wait_for(self._settled.wait(), timeout=timeout_s)
        return self._state

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        if self._state.status == CalculationStatus.CALCULATING:
            self._state = replace(self._state, status=CalculationStatus.IDLE)
        self._settled.set()

    async def _run(self, token: int, request: PricingRequestV1) -> None:
        if self._debounce_s > 0:
            await asyncio.sleep(self._debounce_s)
            if token != self._state.latest_token:
                logger.debug("recalculation_superseded", token=token)
                return

        try:
            result = await self._pricing.calculate_total(request)
            _check_matches_request(request, result)
        except Exception as e:
            self._settle_error(token, CalculationError(f"Unable to calculate total: {e}", cause=e))
            return

        self._settle_result(token, result)

    def _settle_result(self, token: int, result: PricingResultV1) -> None:
        if token != self._state.latest_token:
            logger.debug(
                "stale_pricing_result_discarded",
                token=token,
                latest_token=self._state.latest_token,
                total_cents=result.total_cents,
            )
            return

        self._state = replace(
            self._state,
            status=CalculationStatus.READY,
            result=result,
            result_token=token,
            error=None,
        )
        self._settled.set()
        logger.debug("pricing_ready", token=token, total_cents=result.total_cents)

    def _settle_error(self, token: int, error: CalculationError) -> None:
        if token != self._state.latest_token:
            logger.debug("stale_pricing_error_discarded", token=token, error=str(error))
            return

        self._state = replace(self._state, status=CalculationStatus.ERROR, error=error)
        self._settled.set()
        logger.warning("pricing_failed", token=token, error=str(error))


def _check_matches_request(request: PricingRequestV1, result: PricingResultV1) -> None:
    if result.rate_card == RateCardV1.ZONES:
        # Delivery and VAT are the server's to decide under the zones rate card.
        echoed: tuple[int, ...] = (result.subtotal_before_discount_cents,)
        sent: tuple[int, ...] = (request.subtotal_cents,)
    else:
        echoed = (
            result.subtotal_before_discount_cents,
            result.tax_cents,
            result.delivery_cost_cents,
        )
        sent = (request.subtotal_cents, request.tax_cents, request.delivery_cost_cents)
    if echoed != sent:
        raise CalculationError(f"Pricing result {echoed} does not answer request {sent}")
