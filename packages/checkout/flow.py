"""Checkout flow: cart changes, pricing, payment, order, confirmation.

The flow owns the one state machine the checkout screen renders:

    IDLE -> CALCULATING -> READY | CALCULATION_ERROR
         -> AUTHORIZING -> AUTHORIZATION_FAILED | COMMITTING
         -> COMMITTED | COMMIT_FAILED_AFTER_PAYMENT

While pricing, the state mirrors the discount coordinator. Once checkout()
starts, the flow's own stage takes over until the shopper edits the cart again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from packages.checkout.authorization import PaymentAttempt, PaymentAuthorizationStep
from packages.checkout.cart import Cart
from packages.checkout.client import StorefrontClient
from packages.checkout.commit import OrderCommitStep
from packages.checkout.config import CheckoutConfig
from packages.checkout.coordinator import CalculationStatus, DiscountRequestCoordinator
from packages.checkout.errors import (
    AuthorizationFailedError,
    CheckoutError,
    CheckoutInProgressError,
    CheckoutNotReadyError,
    CommitFailedAfterPayment,
)
from packages.checkout.failure_log import FailureLogger
from packages.shared.schemas.checkout_v1 import (
    CheckoutActionTypeV1,
    CheckoutActionV1,
    CheckoutStateV1,
    CheckoutViewV1,
)
from packages.shared.schemas.order_v1 import (
    DeliveryTypeV1,
    OrderConfirmationEmailV1,
    OrderItemV1,
    ShippingAddressV1,
)
from packages.shared.schemas.pricing_v1 import DeliveryZoneV1

logger = structlog.get_logger(__name__)

_COORDINATOR_STATES = {
    CalculationStatus.IDLE: CheckoutStateV1.IDLE,
    CalculationStatus.CALCULATING: CheckoutStateV1.CALCULATING,
    CalculationStatus.READY: CheckoutStateV1.READY,
    CalculationStatus.ERROR: CheckoutStateV1.CALCULATION_ERROR,
}

_LOCKED_STAGES = (
    CheckoutStateV1.AUTHORIZING,
    CheckoutStateV1.COMMITTING,
    CheckoutStateV1.COMMIT_FAILED_AFTER_PAYMENT,
)

_PAYABLE_STATES = (
    CheckoutStateV1.IDLE,
    CheckoutStateV1.READY,
    CheckoutStateV1.AUTHORIZATION_FAILED,
)


def format_money(amount_cents: int, currency: str) -> str:
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{whole}.{cents:02d} {currency}"


@dataclass(frozen=True, slots=True)
class OrderReceipt:
    order_id: str
    transaction_id: str
    total_cents: int
    currency: str
    delivery_type: DeliveryTypeV1
    items: tuple[OrderItemV1, ...]


class CheckoutFlow:
    def __init__(
        self,
        client: StorefrontClient,
        config: CheckoutConfig,
        *,
        customer_email: str | None = None,
        owns_client: bool = False,
    ) -> None:
        self._client = client
        self._config = config
        self._customer_email = customer_email
        self._owns_client = owns_client

        self._cart = Cart(config.delivery_fee_cents)
        self._coordinator = DiscountRequestCoordinator(client, debounce_s=config.debounce_s)
        self._failures = FailureLogger(client, sink_timeout_s=config.timeout_s)
        self._authorization = PaymentAuthorizationStep(
            client, self._failures, currency=config.currency
        )
        self._commit = OrderCommitStep(client, self._failures)

        # None while the coordinator drives the state.
        self._stage: CheckoutStateV1 | None = None
        self._attempt: PaymentAttempt | None = None
        self._last_error: CheckoutError | None = None
        self._receipt: OrderReceipt | None = None
        self._notifications: set[asyncio.Task[None]] = set()

    @classmethod
    def from_env(cls, user_id: str, *, customer_email: str | None = None) -> "CheckoutFlow":
        config = CheckoutConfig.from_env()
        return cls(
            StorefrontClient(config, user_id),
            config,
            customer_email=customer_email,
            owns_client=True,
        )

    @property
    def coordinator(self) -> DiscountRequestCoordinator:
        return self._coordinator

    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def receipt(self) -> OrderReceipt | None:
        return self._receipt

    @property
    def state(self) -> CheckoutStateV1:
        if self._stage is not None:
            return self._stage
        return _COORDINATOR_STATES[self._coordinator.state.status]

    def set_items(self, items: list[OrderItemV1]) -> int | None:
        self._begin_edit()
        self._cart.set_items(items)
        return self._recalculate()

    def add_item(self, item: OrderItemV1) -> int | None:
        self._begin_edit()
        self._cart.add_item(item)
        return self._recalculate()

    def remove_item(self, product_id: str) -> int | None:
        self._begin_edit()
        self._cart.remove_item(product_id)
        return self._recalculate()

    def set_delivery(
        self,
        delivery_type: DeliveryTypeV1,
        address: ShippingAddressV1 | None = None,
        zone: DeliveryZoneV1 | None = None,
    ) -> int | None:
        self._begin_edit()
        self._cart.set_delivery(delivery_type, address, zone)
        return self._recalculate()

    def refresh(self) -> int | None:
        """Ask the pricing engine again even when the cart has not changed.

        Needed after a pricing error and after the server refused to charge a
        total it no longer agrees with.
        """

        self._begin_edit()
        return self._recalculate(force=True)

    async def checkout(self) -> OrderReceipt:
        if self._stage in _LOCKED_STAGES:
            raise CheckoutInProgressError(f"Checkout cannot start while {self._stage.value}")

        reason = self._blocking_reason()
        if reason is not None:
            raise CheckoutNotReadyError(reason)

        items = self._cart.items
        delivery_type = self._cart.delivery_type
        address = self._cart.shipping_address

        self._stage = CheckoutStateV1.AUTHORIZING
        self._last_error = None
        try:
            attempt = await self._authorization.authorize(self._coordinator)
        except CheckoutNotReadyError:
            self._stage = None
            raise
        except CheckoutError as e:
            self._stage = CheckoutStateV1.AUTHORIZATION_FAILED
            self._last_error = e
            raise

        self._attempt = attempt
        self._stage = CheckoutStateV1.COMMITTING
        try:
            committed = await self._commit.commit(attempt, items, address, delivery_type)
        except CommitFailedAfterPayment as e:
            # Cart stays as it was so support can see what was bought.
            self._stage = CheckoutStateV1.COMMIT_FAILED_AFTER_PAYMENT
            self._last_error = e
            raise

        receipt = OrderReceipt(
            order_id=committed.order_id,
            transaction_id=committed.transaction_id,
            total_cents=attempt.amount_cents,
            currency=attempt.currency,
            delivery_type=delivery_type,
            items=tuple(items),
        )
        self._cart.clear()
        self._receipt = receipt
        self._stage = CheckoutStateV1.COMMITTED

        self._schedule_confirmation(receipt)
        return receipt

    def view(self) -> CheckoutViewV1:
        state = self.state
        currency = self._config.currency
        view = CheckoutViewV1(
            state=state,
            checkout_enabled=False,
            checkout_label="Proceed to Payment",
            currency=currency,
        )

        if state in _PAYABLE_STATES:
            view = self._payable_view(view)
        elif state == CheckoutStateV1.CALCULATING:
            view.checkout_label = "Calculating discount..."
        elif state == CheckoutStateV1.CALCULATION_ERROR:
            view.checkout_label = "Unable to calculate total. Refresh to retry"
            view.message = "We could not calculate your total. Nothing has been charged."
            view.severity = "warning"
            view.actions = [CheckoutActionV1(type=CheckoutActionTypeV1.REFRESH, label="Refresh")]
        elif state == CheckoutStateV1.AUTHORIZING:
            view.checkout_label = "Processing payment..."
        elif state == CheckoutStateV1.COMMITTING:
            view.checkout_label = "Creating your order..."
        elif state == CheckoutStateV1.COMMITTED and self._receipt is not None:
            view = self._committed_view(view, self._receipt)
        elif state == CheckoutStateV1.COMMIT_FAILED_AFTER_PAYMENT:
            view = self._support_view(view)

        if state in (CheckoutStateV1.AUTHORIZING, CheckoutStateV1.COMMITTING) and self._attempt:
            view.total_cents = self._attempt.amount_cents
        return view

    async def aclose(self) -> None:
        if self._notifications:
            await asyncio.gather(*list(self._notifications), return_exceptions=True)
        await self._coordinator.aclose()
        if self._owns_client:
            await self._client.aclose()

    def _begin_edit(self) -> None:
        if self._stage == CheckoutStateV1.COMMIT_FAILED_AFTER_PAYMENT:
            raise CheckoutInProgressError(
                "A paid order is waiting for support; the cart cannot change"
            )
        if self._stage in _LOCKED_STAGES:
            raise CheckoutInProgressError(f"Cart cannot change while {self._stage.value}")

        # Editing after a decline or a finished order starts pricing over.
        self._stage = None
        self._attempt = None
        self._last_error = None

    def _recalculate(self, *, force: bool = False) -> int | None:
        return self._coordinator.request_recalculation(self._cart.pricing_request(), force=force)

    def _blocking_reason(self) -> str | None:
        if self._cart.is_empty:
            return CheckoutNotReadyError.EMPTY_CART
        if (
            self._cart.delivery_type == DeliveryTypeV1.DELIVERY
            and self._cart.shipping_address is None
        ):
            return CheckoutNotReadyError.MISSING_ADDRESS
        if self._needs_refresh():
            return CheckoutNotReadyError.NEEDS_REFRESH
        return self._coordinator.not_ready_reason()

    def _needs_refresh(self) -> bool:
        # The server priced the cart differently, so the same total would fail again.
        error = self._last_error
        return (
            self._stage == CheckoutStateV1.AUTHORIZATION_FAILED
            and isinstance(error, AuthorizationFailedError)
            and error.status_code == 400
        )

    def _payable_view(self, view: CheckoutViewV1) -> CheckoutViewV1:
        result = self._coordinator.state.result
        if self._coordinator.is_ready_for_payment() and result is not None:
            total = format_money(result.total_cents, view.currency)
            view.checkout_label = f"Proceed to Payment ({total})"
            view.subtotal_before_discount_cents = result.subtotal_before_discount_cents
            view.discount_cents = result.discount_cents
            view.discount_percentage = result.discount.percentage if result.discount else None
            view.total_cents = result.total_cents

        reason = self._blocking_reason()
        view.checkout_enabled = reason is None
        if reason == CheckoutNotReadyError.EMPTY_CART:
            view.message = "Your cart is empty."
        elif reason == CheckoutNotReadyError.MISSING_ADDRESS:
            view.message = "Enter a delivery address or choose pickup."

        if view.state == CheckoutStateV1.AUTHORIZATION_FAILED:
            view.severity = "error"
            error = self._last_error
            if self._needs_refresh():
                view.checkout_label = "Total changed. Refresh to retry"
                view.message = (
                    "Your total has changed. Please refresh and try again. No order was placed."
                )
                view.actions = [
                    CheckoutActionV1(type=CheckoutActionTypeV1.REFRESH, label="Refresh")
                ]
            else:
                if isinstance(error, AuthorizationFailedError):
                    view.message = "Your payment was declined. No order was placed."
                else:
                    view.message = "We could not confirm your payment. No order was placed."
                view.actions = [
                    CheckoutActionV1(type=CheckoutActionTypeV1.RETRY, label="Try again")
                ]
        elif view.checkout_enabled:
            view.actions = [
                CheckoutActionV1(
                    type=CheckoutActionTypeV1.PROCEED_TO_PAYMENT, label=view.checkout_label
                )
            ]
        return view

    def _committed_view(self, view: CheckoutViewV1, receipt: OrderReceipt) -> CheckoutViewV1:
        view.checkout_label = "Order placed"
        view.message = f"Thank you! Your order {receipt.order_id} has been placed."
        view.severity = "success"
        view.total_cents = receipt.total_cents
        view.order_id = receipt.order_id
        view.transaction_id = receipt.transaction_id
        view.actions = [
            CheckoutActionV1(
                type=CheckoutActionTypeV1.VIEW_RECEIPT,
                label="View receipt",
                payload={"order_id": receipt.order_id},
            )
        ]
        return view

    def _support_view(self, view: CheckoutViewV1) -> CheckoutViewV1:
        txn = None
        if isinstance(self._last_error, CommitFailedAfterPayment):
            txn = self._last_error.transaction_id
        contact = self._config.support_contact

        view.checkout_label = "Contact support"
        view.severity = "critical"
        view.message = (
            f"Your payment went through but we could not create your order. "
            f"Please do not pay again. Contact {contact} and quote transaction {txn}."
        )
        view.transaction_id = txn
        if self._attempt is not None:
            view.total_cents = self._attempt.amount_cents
        view.actions = [
            CheckoutActionV1(
                type=CheckoutActionTypeV1.CONTACT_SUPPORT,
                label="Contact support",
                payload={"contact": contact, "transaction_id": txn},
            )
        ]
        return view

    def _schedule_confirmation(self, receipt: OrderReceipt) -> None:
        if not self._customer_email:
            logger.debug("order_confirmation_skipped", order_id=receipt.order_id)
            return

        message = OrderConfirmationEmailV1(
            order_id=receipt.order_id,
            transaction_id=receipt.transaction_id,
            customer_email=self._customer_email,
            items=list(receipt.items),
            total_cents=receipt.total_cents,
            currency=receipt.currency,
            delivery_type=receipt.delivery_type,
        )
        task = asyncio.get_running_loop().create_task(self._send_confirmation(message))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _send_confirmation(self, message: OrderConfirmationEmailV1) -> None:
        try:
            await self._client.send_order_confirmation(message)
        except Exception as e:
            logger.warning(
                "order_confirmation_not_sent", order_id=message.order_id, error=str(e)
            )
            return
        logger.info("order_confirmation_sent", order_id=message.order_id)
