import math
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def count_nights(check_in: date | datetime, check_out: date | datetime) -> int:
    """
    Number of billable nights between check-in and check-out.
    Partial days round up when both ends carry a time; a date paired with a
    datetime counts calendar days. The result is never below 1.
    """
    if isinstance(check_in, datetime) and isinstance(check_out, datetime):
        days = math.ceil((check_out - check_in).total_seconds() / 86400)
    else:
        days = (_as_date(check_out) - _as_date(check_in)).days
    return max(1, days)


def calculate_total_price(
    nightly_rate: Decimal | float | int,
    check_in: date | datetime,
    check_out: date | datetime,
    override: Decimal | float | None = None,
) -> Decimal:
    """Total for a stay, or the ad-hoc ``override`` when one is given."""
    if override is not None:
        amount = Decimal(str(override))
        if amount < 0:
            raise ValueError("Price override cannot be negative")
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    rate = Decimal(str(nightly_rate))
    return (rate * count_nights(check_in, check_out)).quantize(CENTS, rounding=ROUND_HALF_UP)
