"""Pure money and calendar helpers behind the daily budget.

Amounts are signed floats: negative values are income, positive values are
expenses. Every amount the engine writes goes through ``round_up_to_cents``,
which rounds toward positive infinity so a deduction is never under-delivered.
"""

import calendar
import math
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

# Float products like 60 * 0.1 land a hair above the true value; anything
# closer than this to a whole cent is treated as that cent.
_CENT_NOISE_DIGITS = 6


def _ceil_cents(value: float) -> int:
    return math.ceil(round(value * 100, _CENT_NOISE_DIGITS))


def round_up_to_cents(value: float) -> float:
    return _ceil_cents(value) / 100


def to_cents(value: float) -> int:
    """Whole cents, rounded up like ``round_up_to_cents``."""
    return _ceil_cents(value)


def from_cents(cents: int) -> float:
    return cents / 100


def base_from_recurring(recurring_amounts: Iterable[float], days_in_month: int) -> float:
    """Even daily share of the net recurring cash flow (incomes are negative)."""
    return -sum(recurring_amounts) / days_in_month


def leftover_contribution(
    previous_base: float,
    previous_variable_expense_sum: float,
    remaining_days_incl_today: int,
) -> float:
    return (previous_base - previous_variable_expense_sum) / remaining_days_incl_today


def income_distribution(today_income_sum: float, remaining_days_incl_today: int) -> float:
    """Spread today's variable income over the rest of the month.

    ``today_income_sum`` is the (negative) sum of today's income transactions.
    """
    return -today_income_sum / remaining_days_incl_today


def variable_expense_sum(transactions, include_savings_ops: bool) -> float:
    total = 0.0
    for tx in transactions:
        amount = tx.amount or 0
        if amount <= 0:
            continue
        if tx.is_savings_op and not include_savings_ops:
            continue
        total += amount
    return total


def variable_income_sum(transactions) -> float:
    """Negative sum of non-automatic income transactions."""
    return sum(
        tx.amount for tx in transactions
        if (tx.amount or 0) < 0 and not tx.is_savings_op
    )


# ─────────────────────────────
#   Calendar
# ─────────────────────────────

def days_in_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def remaining_days_in_month(day: date) -> int:
    """Days left in the month, today included."""
    return days_in_month(day) - day.day + 1


def previous_day_in_month(day: date) -> Optional[date]:
    if day.day == 1:
        return None
    return day - timedelta(days=1)


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def local_today(timezone_name: str, now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(timezone_name)).date()
