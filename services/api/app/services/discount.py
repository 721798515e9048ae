from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from services.api.app.db.models import User
from sqlalchemy.orm import Session

NEW_USER_DISCOUNT_PERCENTAGE = 5.0
NEW_USER_DISCOUNT_DURATION_MONTHS = 3
_AVERAGE_DAYS_PER_MONTH = 30.44


@dataclass(frozen=True, slots=True)
class DiscountEligibility:
    eligible: bool
    percentage: float
    reason: str | None = None
    account_created_at: datetime | None = None
    months_since_creation: float | None = None


def check_new_user_discount(
    db: Session, user_id: str, *, now: datetime | None = None
) -> DiscountEligibility:
    """New accounts get NEW_USER_DISCOUNT_PERCENTAGE off for their first three months.

    Decided here only. Anything the client claims about eligibility is ignored.
    """

    user = db.get(User, user_id)
    if user is None:
        return DiscountEligibility(eligible=False, percentage=0.0, reason="User not found")

    created_at = user.created_at
    if created_at is None:
        return DiscountEligibility(
            eligible=False, percentage=0.0, reason="User creation date not found"
        )

    # SQLite hands back naive datetimes even for timezone-aware columns; they hold UTC.
    created_at = _as_utc(created_at)
    now = _as_utc(now or datetime.now(timezone.utc))

    months = (now - created_at).total_seconds() / (86400 * _AVERAGE_DAYS_PER_MONTH)
    if months < NEW_USER_DISCOUNT_DURATION_MONTHS:
        return DiscountEligibility(
            eligible=True,
            percentage=NEW_USER_DISCOUNT_PERCENTAGE,
            account_created_at=created_at,
            months_since_creation=months,
        )

    return DiscountEligibility(
        eligible=False,
        percentage=0.0,
        reason=f"Account created more than {NEW_USER_DISCOUNT_DURATION_MONTHS} months ago",
        account_created_at=created_at,
        months_since_creation=months,
    )


def discount_amount_cents(subtotal_cents: int, percentage: float) -> int:
    """Percentage of the subtotal, rounded half-up to the cent and capped at the subtotal."""

    if subtotal_cents <= 0 or percentage <= 0:
        return 0
    if percentage > 100:
        raise ValueError(f"Discount percentage out of range: {percentage}")

    raw = Decimal(subtotal_cents) * Decimal(str(percentage)) / Decimal(100)
    amount = int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return min(amount, subtotal_cents)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value
