"""
Money arithmetic for metered sessions.

All amounts are Decimals quantized to paise. Per-tick charges are
derived from cumulative totals so that rounding never accumulates
over a long session.
"""

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import NamedTuple

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def cost_for(rate_per_minute, seconds: int) -> Decimal:
    """
    Cumulative cost of `seconds` of talk time at a per-minute rate.
    """
    if seconds <= 0:
        return Decimal("0.00")
    rate = Decimal(str(rate_per_minute))
    return (rate * seconds / 60).quantize(CENT, rounding=ROUND_HALF_UP)


def payee_share(total_cost: Decimal, commission_rate) -> Decimal:
    """
    Cumulative astrologer earnings for a cumulative cost.

    Rounded down; the platform keeps the remainder.
    """
    keep = Decimal("1") - Decimal(str(commission_rate))
    return (total_cost * keep).quantize(CENT, rounding=ROUND_DOWN)


class Charge(NamedTuple):
    amount: Decimal
    payee_amount: Decimal
    commission: Decimal


def charge_between(
    rate_per_minute,
    billed_seconds: int,
    target_seconds: int,
    commission_rate,
) -> Charge:
    """
    Charge for advancing billing from `billed_seconds` to `target_seconds`.
    """
    old_total = cost_for(rate_per_minute, billed_seconds)
    new_total = cost_for(rate_per_minute, target_seconds)

    amount = new_total - old_total
    payee_amount = (
        payee_share(new_total, commission_rate)
        - payee_share(old_total, commission_rate)
    )
    return Charge(amount, payee_amount, amount - payee_amount)


def affordable_seconds(
    rate_per_minute,
    billed_seconds: int,
    target_seconds: int,
    balance: Decimal,
) -> int:
    """
    Largest billing target in (billed_seconds, target_seconds] whose
    charge fits in `balance`. Returns `billed_seconds` if none does.
    """
    base = cost_for(rate_per_minute, billed_seconds)
    low, high = billed_seconds, target_seconds
    while low < high:
        mid = (low + high + 1) // 2
        if cost_for(rate_per_minute, mid) - base <= balance:
            low = mid
        else:
            high = mid - 1
    return low


def minimum_balance(rate_per_minute, minutes: int = 1) -> Decimal:
    return to_money(Decimal(str(rate_per_minute)) * minutes)
