from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from phone_market.core.errors import ValidationError

MIN_MONTHS = 2
MAX_MONTHS = 12
MIN_DOWN_PAYMENT_RATE = Decimal("0.30")
MONTHLY_SURCHARGE_RATE = Decimal("0.05")

CENT = Decimal("0.01")
# largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(frozen=True)
class Installments:
    down_payment: Decimal
    monthly: Decimal
    total: Decimal


def round_money(value: Decimal) -> Decimal:
    # ROUND_HALF_UP on Decimal rounds half away from zero
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _positive_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite() or parsed <= 0:
        return None
    return parsed


def validate_months(months: Any) -> int:
    if isinstance(months, bool) or not isinstance(months, int):
        raise ValidationError(f"Months must be an integer between {MIN_MONTHS} and {MAX_MONTHS}")
    if months < MIN_MONTHS or months > MAX_MONTHS:
        raise ValidationError(f"Months must be between {MIN_MONTHS} and {MAX_MONTHS}")
    return months


def minimum_down_payment(price: Decimal) -> Decimal:
    return round_money(price * MIN_DOWN_PAYMENT_RATE)


def calculate_installments(price: Decimal, requested_down_payment: Any, months: Any) -> Installments:
    """
    Split a listing price into down payment and monthly installments.

    The customer may offer more than 30% up front but never less; anything
    missing, non-numeric or non-positive falls back to the minimum. The
    remaining balance carries a flat 5% surcharge per month (not compounded).
    """
    months = validate_months(months)
    price = Decimal(price)

    if price > MAX_AMOUNT:
        raise ValidationError("Price is too large")

    min_down = minimum_down_payment(price)
    requested = _positive_decimal(requested_down_payment)
    if requested is not None and requested > MAX_AMOUNT:
        raise ValidationError("Down payment is too large")
    down = max(requested, min_down) if requested is not None else min_down

    remaining = max(price - down, Decimal(0))
    total = round_money(remaining * (1 + MONTHLY_SURCHARGE_RATE * months))
    if total > MAX_AMOUNT:
        raise ValidationError("Price is too large for installments")
    monthly = round_money(total / months)

    return Installments(down_payment=round_money(down), monthly=monthly, total=total)
