from __future__ import annotations

import asyncio

import pytest

from packages.checkout.coordinator import CalculationStatus, DiscountRequestCoordinator
from packages.checkout.errors import CalculationError, CheckoutNotReadyError, NetworkError
from packages.shared.schemas.pricing_v1 import (
    DeliveryZoneV1,
    PricingRequestV1,
    PricingResultV1,
    RateCardV1,
)

DELIVERY = PricingRequestV1(subtotal_cents=10000, delivery_cost_cents=5000)
PICKUP = PricingRequestV1(subtotal_cents=10000, delivery_cost_cents=0)


@pytest.mark.asyncio
async def test_ready_after_single_recalculation(fake) -> None:
    coordinator = DiscountRequestCoordinator(fake)

    token = coordinator.request_recalculation(DELIVERY)
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert token == 1
    assert state.status == CalculationStatus.READY
    assert state.result is not None
    assert state.result.discount_cents == 500
    assert state.result.total_cents == 14500
    assert coordinator.is_ready_for_payment()


@pytest.mark.asyncio
async def test_stale_result_arriving_last_is_discarded(fake, drain) -> None:
    fake.discount_percentage = 0.0
    fake.hold_pricing = True
    coordinator = DiscountRequestCoordinator(fake)

    r1 = coordinator.request_recalculation(DELIVERY)
    await drain()
    r2 = coordinator.request_recalculation(PICKUP)
    await drain()
    assert (r1, r2) == (1, 2)
    assert len(fake.held) == 2

    # R2 answers first, then the slower R1.
    fake.held[1].set_result(None)
    await drain()
    assert coordinator.state.result is not None
    assert coordinator.state.result.total_cents == 10000

    fake.held[0].set_result(None)
    await drain()

    state = coordinator.state
    assert state.status == CalculationStatus.READY
    assert state.result is not None
    assert state.result.total_cents == 10000
    assert state.result_token == 2
    assert coordinator.is_ready_for_payment()


@pytest.mark.asyncio
async def test_stale_result_arriving_first_never_makes_it_ready(fake, drain) -> None:
    fake.discount_percentage = 0.0
    fake.hold_pricing = True
    coordinator = DiscountRequestCoordinator(fake)

    coordinator.request_recalculation(DELIVERY)
    await drain()
    coordinator.request_recalculation(PICKUP)
    await drain()

    fake.held[0].set_result(None)
    await drain()
    assert coordinator.state.status == CalculationStatus.CALCULATING
    assert coordinator.state.result is None
    assert not coordinator.is_ready_for_payment()

    fake.held[1].set_result(None)
    state = await coordinator.wait_until_settled(timeout_s=1)
    assert state.result is not None
    assert state.result.total_cents == 10000


@pytest.mark.asyncio
async def test_not_ready_while_newer_request_is_in_flight(fake, drain) -> None:
    coordinator = DiscountRequestCoordinator(fake)
    coordinator.request_recalculation(DELIVERY)
    await coordinator.wait_until_settled(timeout_s=1)
    assert coordinator.is_ready_for_payment()

    fake.hold_pricing = True
    coordinator.request_recalculation(PICKUP)
    await drain()

    # The old result is still stored but belongs to an older token.
    assert coordinator.state.result is not None
    assert coordinator.state.result_token == 1
    assert coordinator.state.latest_token == 2
    assert not coordinator.is_ready_for_payment()
    assert coordinator.not_ready_reason() == CheckoutNotReadyError.STILL_CALCULATING

    await coordinator.aclose()


@pytest.mark.asyncio
async def test_identical_request_is_deduplicated(fake) -> None:
    coordinator = DiscountRequestCoordinator(fake)

    assert coordinator.request_recalculation(DELIVERY) == 1
    assert coordinator.request_recalculation(PricingRequestV1(subtotal_cents=10000, delivery_cost_cents=5000)) is None
    await coordinator.wait_until_settled(timeout_s=1)
    assert coordinator.request_recalculation(DELIVERY) is None

    assert len(fake.pricing_calls) == 1


@pytest.mark.asyncio
async def test_pricing_failure_becomes_calculation_error(fake) -> None:
    fake.pricing_error = NetworkError("Timed out calling /v1/pricing/calculate-total")
    coordinator = DiscountRequestCoordinator(fake)

    coordinator.request_recalculation(DELIVERY)
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert state.status == CalculationStatus.ERROR
    assert isinstance(state.error, CalculationError)
    assert isinstance(state.error.cause, NetworkError)
    assert not coordinator.is_ready_for_payment()
    assert coordinator.not_ready_reason() == CheckoutNotReadyError.CALCULATION_FAILED


@pytest.mark.asyncio
async def test_same_request_is_retried_after_error(fake) -> None:
    fake.pricing_error = NetworkError("down")
    coordinator = DiscountRequestCoordinator(fake)
    coordinator.request_recalculation(DELIVERY)
    await coordinator.wait_until_settled(timeout_s=1)

    fake.pricing_error = None
    assert coordinator.request_recalculation(DELIVERY) == 2
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert state.status == CalculationStatus.READY
    assert state.error is None
    assert coordinator.is_ready_for_payment()


@pytest.mark.asyncio
async def test_stale_error_does_not_override_newer_result(fake, drain) -> None:
    fake.hold_pricing = True
    coordinator = DiscountRequestCoordinator(fake)

    coordinator.request_recalculation(DELIVERY)
    await drain()
    coordinator.request_recalculation(PICKUP)
    await drain()

    fake.held[1].set_result(None)
    await drain()
    fake.pricing_error = NetworkError("late failure")
    fake.held[0].set_result(None)
    await drain()

    assert coordinator.state.status == CalculationStatus.READY
    assert coordinator.is_ready_for_payment()


@pytest.mark.asyncio
async def test_result_that_answers_a_different_request_is_an_error() -> None:
    class _WrongEcho:
        async def calculate_total(self, request: PricingRequestV1) -> PricingResultV1:
            return PricingResultV1(
                subtotal_before_discount_cents=request.subtotal_cents,
                subtotal_cents=request.subtotal_cents,
                tax_cents=0,
                delivery_cost_cents=0,
                total_cents=request.subtotal_cents,
            )

    coordinator = DiscountRequestCoordinator(_WrongEcho())
    coordinator.request_recalculation(DELIVERY)
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert state.status == CalculationStatus.ERROR
    assert not coordinator.is_ready_for_payment()


@pytest.mark.asyncio
async def test_debounce_only_prices_the_last_request(fake) -> None:
    coordinator = DiscountRequestCoordinator(fake, debounce_s=0.02)

    for subtotal in (1000, 2000, 3000):
        coordinator.request_recalculation(PricingRequestV1(subtotal_cents=subtotal))
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert [r.subtotal_cents for r in fake.pricing_calls] == [3000]
    assert state.latest_token == 3
    assert state.result is not None
    assert state.result.subtotal_before_discount_cents == 3000


@pytest.mark.asyncio
async def test_idle_coordinator_is_not_ready(fake) -> None:
    coordinator = DiscountRequestCoordinator(fake)

    assert coordinator.state.status == CalculationStatus.IDLE
    assert not coordinator.is_ready_for_payment()
    assert coordinator.not_ready_reason() == CheckoutNotReadyError.NOT_CALCULATED


@pytest.mark.asyncio
async def test_forced_recalculation_reprices_an_unchanged_request(fake) -> None:
    coordinator = DiscountRequestCoordinator(fake)
    coordinator.request_recalculation(DELIVERY)
    await coordinator.wait_until_settled(timeout_s=1)

    fake.discount_percentage = 0.0
    assert coordinator.request_recalculation(DELIVERY) is None
    assert coordinator.request_recalculation(DELIVERY, force=True) == 2
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert len(fake.pricing_calls) == 2
    assert state.result is not None
    assert state.result.total_cents == 15000
    assert state.result_token == 2


@pytest.mark.asyncio
async def test_close_settles_pending_waiters(fake, drain) -> None:
    fake.hold_pricing = True
    coordinator = DiscountRequestCoordinator(fake)
    coordinator.request_recalculation(DELIVERY)
    await drain()

    await coordinator.aclose()
    state = await asyncio.wait_for(coordinator.wait_until_settled(), timeout=1)

    assert state.status == CalculationStatus.IDLE
    assert not coordinator.is_ready_for_payment()


@pytest.mark.asyncio
async def test_zones_result_may_replace_delivery_and_tax() -> None:
    class _Zones:
        async def calculate_total(self, request: PricingRequestV1) -> PricingResultV1:
            return PricingResultV1(
                subtotal_before_discount_cents=request.subtotal_cents,
                subtotal_cents=request.subtotal_cents,
                tax_cents=2970,
                delivery_cost_cents=6500,
                total_cents=request.subtotal_cents + 2970 + 6500,
                rate_card=RateCardV1.ZONES,
            )

    request = PricingRequestV1(
        subtotal_cents=10000,
        delivery_cost_cents=5000,
        delivery_zone=DeliveryZoneV1.TELAVIV_NORTH,
    )
    coordinator = DiscountRequestCoordinator(_Zones())
    coordinator.request_recalculation(request)
    state = await coordinator.wait_until_settled(timeout_s=1)

    assert state.status == CalculationStatus.READY
    assert state.result is not None
    assert state.result.total_cents == 19470
    assert coordinator.is_ready_for_payment()
