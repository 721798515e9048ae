from __future__ import annotations

import os
from typing import Protocol

from packages.shared.schemas.order_v1 import OrderConfirmationEmailV1
from services.api.app.logger import get_logger

logger = get_logger(__name__)


class MailerError(Exception):
    """Raised when a confirmation email could not be handed off."""


class Mailer(Protocol):
    name: str

    def send_order_confirmation(self, message: OrderConfirmationEmailV1) -> str: ...


class LogMailer:
    """Writes the confirmation to the log instead of sending it."""

    name = "LOG"

    def send_order_confirmation(self, message: OrderConfirmationEmailV1) -> str:
        if not message.customer_email:
            raise MailerError("No customer email on order")

        logger.info(
            "order_confirmation_email",
            order_id=message.order_id,
            transaction_id=message.transaction_id,
            to=message.customer_email,
            item_count=len(message.items),
            total_cents=message.total_cents,
            currency=message.currency,
        )
        return f"log:{message.order_id}"


def get_mailer() -> Mailer:
    mode = os.getenv("STOREFRONT_MAILER", "log").strip().lower()

    if mode == "log":
        return LogMailer()

    raise ValueError(f"Unknown STOREFRONT_MAILER={mode!r}. Expected log.")
