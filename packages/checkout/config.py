from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CheckoutConfig:
    base_url: str = "http://127.0.0.1:8000"
    timeout_s: float = 10.0
    debounce_s: float = 0.15
    currency: str = "ILS"
    delivery_fee_cents: int = 5000
    support_contact: str = "support@storefront.example"

    @classmethod
    def from_env(cls) -> "CheckoutConfig":
        """Build a config from STOREFRONT_* env vars, falling back to the defaults above."""

        defaults = cls()
        return cls(
            base_url=os.getenv("STOREFRONT_API_BASE_URL", defaults.base_url).strip().rstrip("/"),
            timeout_s=float(os.getenv("STOREFRONT_HTTP_TIMEOUT_S", str(defaults.timeout_s))),
            debounce_s=int(
                os.getenv("STOREFRONT_RECALC_DEBOUNCE_MS", str(round(defaults.debounce_s * 1000)))
            )
            / 1000,
            currency=os.getenv("STOREFRONT_CURRENCY", defaults.currency).strip().upper(),
            delivery_fee_cents=int(
                os.getenv("STOREFRONT_DELIVERY_FEE_CENTS", str(defaults.delivery_fee_cents))
            ),
            support_contact=os.getenv("STOREFRONT_SUPPORT_CONTACT", defaults.support_contact),
        )
