from __future__ import annotations

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1, EventV1
from packages.shared.schemas.order_v1 import (
    FailedOrderStatusV1,
    FailedOrderV1,
    OrderItemV1,
    OrderMetadataV1,
    ShippingAddressV1,
)
from packages.shared.schemas.pricing_v1 import DiscountV1
from services.api.app.db.models import EventLog, FailedOrder, Order, Payment
from services.api.app.models.order import OrderOut, PaymentOut


def order_out(order: Order) -> OrderOut:
    discount = None
    if order.discount_cents and order.discount_percentage:
        discount = DiscountV1(
            percentage=order.discount_percentage, amount_cents=order.discount_cents
        )

    return OrderOut(
        id=order.id,
        user_id=order.user_id,
        transaction_id=order.transaction_id,
        status=order.status,
        items=[OrderItemV1.model_validate(it) for it in order.items_json or []],
        shipping_address=(
            ShippingAddressV1.model_validate(order.shipping_address_json)
            if order.shipping_address_json
            else None
        ),
        subtotal_before_discount_cents=order.subtotal_before_discount_cents,
        discount=discount,
        subtotal_cents=order.subtotal_cents,
        tax_cents=order.tax_cents,
        delivery_cost_cents=order.delivery_cost_cents,
        total_cents=order.total_cents,
        metadata=OrderMetadataV1.model_validate(order.metadata_json or {}),
        created_at=order.created_at.isoformat(),
    )


def payment_out(payment: Payment) -> PaymentOut:
    return PaymentOut(
        transaction_id=payment.transaction_id,
        user_id=payment.user_id,
        gateway=payment.gateway,
        status=payment.status,
        amount_cents=payment.amount_cents,
        currency=payment.currency,
        created_at=payment.created_at.isoformat(),
    )


def failed_order_out(row: FailedOrder) -> FailedOrderV1:
    return FailedOrderV1(
        id=row.id,
        transaction_id=row.transaction_id,
        user_id=row.user_id,
        order_data=row.order_data_json or {},
        error_kind=row.error_kind,
        error=row.error,
        error_details=row.error_details,
        amount_cents=row.amount_cents,
        status=FailedOrderStatusV1(row.status),
        created_at=row.created_at.isoformat(),
        updated_at=row.updated_at.isoformat(),
    )


def event_out(row: EventLog) -> EventV1:
    return EventV1(
        id=row.id,
        user_id=row.user_id,
        entity_type=EntityTypeV1(row.entity_type),
        entity_id=row.entity_id,
        event_type=EventTypeV1(row.event_type),
        payload=row.event_payload_json or {},
        created_at=row.created_at.isoformat(),
    )
