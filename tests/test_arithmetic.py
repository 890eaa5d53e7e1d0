from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from daily_budget.services import arithmetic as ar


def _tx(amount, is_savings_op=False):
    return SimpleNamespace(amount=amount, is_savings_op=is_savings_op)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.001, 0.01),
        (10.00, 10.00),
        (-0.001, 0.0),
        (1.231, 1.24),
        (60 * 0.1, 6.00),
        (0.0, 0.0),
    ],
)
def test_round_up_to_cents(value, expected):
    assert ar.round_up_to_cents(value) == expected


def test_round_up_never_goes_below_value():
    for value in (0.004, 2.005, 19.999, 123.4501):
        assert ar.round_up_to_cents(value) >= value


def test_cents_conversion():
    assert ar.to_cents(9.0) == 900
    assert ar.to_cents(0.333) == 34
    assert ar.from_cents(334) == 3.34


def test_base_from_recurring_is_net_income_per_day():
    # salary 3000, rent 1200
    assert ar.base_from_recurring([-3000, 1200], 30) == 60


def test_base_from_recurring_negative_when_expenses_exceed_income():
    assert ar.base_from_recurring([-1000, 1310], 31) == pytest.approx(-10)


def test_leftover_contribution():
    assert ar.leftover_contribution(50, 30, 10) == 2


def test_leftover_contribution_overspend_is_negative():
    assert ar.leftover_contribution(50, 70, 10) == -2


def test_income_distribution_spreads_over_remaining_days():
    assert ar.income_distribution(-300, 10) == 30
    assert ar.income_distribution(0, 10) == 0


def test_variable_expense_sum_optionally_includes_savings_ops():
    txs = [_tx(25), _tx(5, is_savings_op=True), _tx(-100)]
    assert ar.variable_expense_sum(txs, include_savings_ops=True) == 30
    assert ar.variable_expense_sum(txs, include_savings_ops=False) == 25


def test_variable_income_sum_skips_savings_ops_and_expenses():
    txs = [_tx(-100), _tx(-20, is_savings_op=True), _tx(40)]
    assert ar.variable_income_sum(txs) == -100


def test_calendar_helpers():
    assert ar.days_in_month(date(2024, 2, 10)) == 29
    assert ar.days_in_month(date(2026, 11, 5)) == 30
    assert ar.remaining_days_in_month(date(2026, 10, 22)) == 10
    assert ar.remaining_days_in_month(date(2026, 10, 31)) == 1
    assert ar.previous_day_in_month(date(2026, 11, 1)) is None
    assert ar.previous_day_in_month(date(2026, 11, 2)) == date(2026, 11, 1)
    assert ar.first_day_of_month(date(2026, 11, 17)) == date(2026, 11, 1)


def test_local_today_uses_the_users_zone():
    now = datetime(2026, 10, 18, 23, 30, tzinfo=timezone.utc)
    assert ar.local_today("UTC", now) == date(2026, 10, 18)
    assert ar.local_today("Europe/Warsaw", now) == date(2026, 10, 19)
    assert ar.local_today("America/Los_Angeles", now) == date(2026, 10, 18)


def test_local_today_treats_naive_datetimes_as_utc():
    assert ar.local_today("Asia/Tokyo", datetime(2026, 10, 18, 16, 0)) == date(2026, 10, 19)
