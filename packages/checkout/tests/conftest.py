from __future__ import annotations

import asyncio

import pytest

from packages.checkout.config import CheckoutConfig
from packages.shared.schemas.order_v1 import (
    FailedOrderCreateV1,
    OrderConfirmationEmailV1,
    OrderCreateRequestV1,
    OrderCreateResponseV1,
    OrderItemV1,
    ShippingAddressV1,
)
from packages.shared.schemas.payment_v1 import (
    PaymentAuthorizeRequestV1,
    PaymentAuthorizeResponseV1,
)
from packages.shared.schemas.pricing_v1 import DiscountV1, PricingRequestV1, PricingResultV1


def price(request: PricingRequestV1, percentage: float) -> PricingResultV1:
    discount = None
    if percentage:
        # Half-up on whole cents, same as the pricing engine.
        amount = (request.subtotal_cents * int(percentage * 100) + 5000) // 10000
        if amount:
            discount = DiscountV1(percentage=percentage, amount_cents=amount)

    subtotal = request.subtotal_cents - (discount.amount_cents if discount else 0)
    return PricingResultV1(
        subtotal_before_discount_cents=request.subtotal_cents,
        subtotal_cents=subtotal,
        discount=discount,
        tax_cents=request.tax_cents,
        delivery_cost_cents=request.delivery_cost_cents,
        total_cents=subtotal + request.tax_cents + request.delivery_cost_cents,
    )


class FakeStorefront:
    """In-memory stand-in for StorefrontClient with knobs for every failure path."""

    def __init__(self, *, discount_percentage: float = 5.0) -> None:
        self.discount_percentage = discount_percentage

        self.pricing_calls: list[PricingRequestV1] = []
        self.pricing_error: Exception | None = None
        # When set, each pricing call parks on a future the test resolves.
        self.hold_pricing = False
        self.held: list[asyncio.Future[None]] = []

        self.authorize_calls: list[PaymentAuthorizeRequestV1] = []
        self.authorize_error: Exception | None = None
        self.hold_authorize = False
        self.held_authorize: list[asyncio.Future[None]] = []
        self.echo_amount_cents: int | None = None
        self.transaction_id = "T1"

        self.order_calls: list[OrderCreateRequestV1] = []
        self.order_error: Exception | None = None
        self.hold_order = False
        self.held_orders: list[asyncio.Future[None]] = []

        self.failed_records: list[FailedOrderCreateV1] = []
        self.failed_sink_error: Exception | None = None

        self.emails: list[OrderConfirmationEmailV1] = []
        self.email_error: Exception | None = None

    async def calculate_total(self, request: PricingRequestV1) -> PricingResultV1:
        self.pricing_calls.append(request)
        if self.hold_pricing:
            await _park(self.held)
        if self.pricing_error is not None:
            raise self.pricing_error
        return price(request, self.discount_percentage)

    async def authorize_payment(
        self, request: PaymentAuthorizeRequestV1
    ) -> PaymentAuthorizeResponseV1:
        self.authorize_calls.append(request)
        if self.hold_authorize:
            await _park(self.held_authorize)
        if self.authorize_error is not None:
            raise self.authorize_error
        amount = self.echo_amount_cents if self.echo_amount_cents is not None else request.amount_cents
        return PaymentAuthorizeResponseV1(
            success=True,
            transaction_id=self.transaction_id,
            amount_cents=amount,
            currency=request.currency,
            status="completed",
        )

    async def create_order(self, request: OrderCreateRequestV1) -> OrderCreateResponseV1:
        self.order_calls.append(request)
        if self.hold_order:
            await _park(self.held_orders)
        if self.order_error is not None:
            raise self.order_error
        return OrderCreateResponseV1(id=f"order-{len(self.order_calls)}")

    async def record_failed_order(self, record: FailedOrderCreateV1) -> str:
        if self.failed_sink_error is not None:
            raise self.failed_sink_error
        self.failed_records.append(record)
        return f"failed-{len(self.failed_records)}"

    async def send_order_confirmation(self, message: OrderConfirmationEmailV1) -> None:
        if self.email_error is not None:
            raise self.email_error
        self.emails.append(message)

    async def aclose(self) -> None:
        return None


async def _park(held: list[asyncio.Future[None]]) -> None:
    fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    held.append(fut)
    await fut


async def _drain(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture()
def drain():
    """Awaitable that lets scheduled tasks run until they block again."""

    return _drain


@pytest.fixture()
def fake() -> FakeStorefront:
    return FakeStorefront()


@pytest.fixture()
def config() -> CheckoutConfig:
    return CheckoutConfig(base_url="http://testserver", timeout_s=1.0, debounce_s=0.0)


@pytest.fixture()
def items() -> list[OrderItemV1]:
    return [
        OrderItemV1(product_id="p-1", name="Olive oil", quantity=2, unit_price_cents=3500),
        OrderItemV1(product_id="p-2", name="Za'atar", quantity=1, unit_price_cents=3000),
    ]


@pytest.fixture()
def address() -> ShippingAddressV1:
    return ShippingAddressV1(street="Herzl 1", city="Haifa", zip_code="3100000")
