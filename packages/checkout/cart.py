from __future__ import annotations

from packages.shared.schemas.order_v1 import DeliveryTypeV1, OrderItemV1, ShippingAddressV1
from packages.shared.schemas.pricing_v1 import DeliveryZoneV1, PricingRequestV1


class Cart:
    """Items plus the delivery choice. Pricing only ever sees its PricingRequestV1."""

    def __init__(self, delivery_fee_cents: int) -> None:
        self._delivery_fee_cents = delivery_fee_cents
        self._items: list[OrderItemV1] = []
        self.delivery_type = DeliveryTypeV1.DELIVERY
        self.delivery_zone: DeliveryZoneV1 | None = None
        self.shipping_address: ShippingAddressV1 | None = None

    @property
    def items(self) -> list[OrderItemV1]:
        return [it.model_copy() for it in self._items]

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def subtotal_cents(self) -> int:
        return sum(it.line_total_cents for it in self._items)

    @property
    def total_weight_kg(self) -> float:
        return sum(it.weight_kg * it.quantity for it in self._items)

    @property
    def delivery_cost_cents(self) -> int:
        # Flat estimate. A zones rate card on the server replaces it.
        if self.delivery_type == DeliveryTypeV1.PICKUP:
            return 0
        return self._delivery_fee_cents

    def set_items(self, items: list[OrderItemV1]) -> None:
        self._items = [it.model_copy() for it in items]

    def add_item(self, item: OrderItemV1) -> None:
        for i, existing in enumerate(self._items):
            if item.product_id and existing.product_id == item.product_id:
                self._items[i] = existing.model_copy(
                    update={"quantity": existing.quantity + item.quantity}
                )
                return
        self._items.append(item.model_copy())

    def remove_item(self, product_id: str) -> bool:
        before = len(self._items)
        self._items = [it for it in self._items if it.product_id != product_id]
        return len(self._items) != before

    def set_delivery(
        self,
        delivery_type: DeliveryTypeV1,
        address: ShippingAddressV1 | None = None,
        zone: DeliveryZoneV1 | None = None,
    ) -> None:
        self.delivery_type = delivery_type
        if address is not None:
            self.shipping_address = address
        if zone is not None:
            self.delivery_zone = zone

    def clear(self) -> None:
        self._items = []

    def pricing_request(self) -> PricingRequestV1:
        pickup = self.delivery_type == DeliveryTypeV1.PICKUP
        return PricingRequestV1(
            subtotal_cents=self.subtotal_cents,
            tax_cents=0,
            delivery_cost_cents=self.delivery_cost_cents,
            delivery_zone=None if pickup else self.delivery_zone,
            total_weight_kg=self.total_weight_kg,
        )
