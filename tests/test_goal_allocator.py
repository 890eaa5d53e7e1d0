from datetime import datetime, timedelta

import pytest

from daily_budget.core.errors import GoalAllocationError, StorageError
from daily_budget.models.goal import Goal
from daily_budget.services.arithmetic import to_cents
from daily_budget.services.goal_allocator import allocate_auto_goals_to_goals
from daily_budget.services.storage import StorageAccessor


T0 = datetime(2026, 10, 1, 8, 0)


def _created(n):
    return T0 + timedelta(minutes=n)


def test_split_proportional_to_percent(session, user, seed):
    house = seed.goal("house", 60, created_at=_created(0))
    bike = seed.goal("bike", 40, created_at=_created(1))

    allocations = allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 10.00)

    assert {a.goal_name: a.share for a in allocations} == {"house": 6.00, "bike": 4.00}
    assert seed.reload(house).current_amount == 6.00
    assert seed.reload(bike).current_amount == 4.00


def test_shares_round_up_and_last_goal_takes_remainder(session, user, seed):
    for i, name in enumerate(("a", "b", "c")):
        seed.goal(name, 10, created_at=_created(i))

    allocations = allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 10.00)

    shares = {a.goal_name: a.share for a in allocations}
    assert shares == {"a": 3.34, "b": 3.34, "c": 3.32}
    assert sum(to_cents(s) for s in shares.values()) == 1000


def test_existing_balance_is_added_to(session, user, seed):
    goal = seed.goal("trip", 100, current=12.50)

    allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 2.25)

    assert seed.reload(goal).current_amount == 14.75


def test_single_cent_goes_to_the_first_goal(session, user, seed):
    for i, name in enumerate(("a", "b", "c")):
        seed.goal(name, 10, created_at=_created(i))

    allocations = allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 0.01)

    assert [(a.goal_name, a.share) for a in allocations] == [("a", 0.01)]


def test_highest_percent_is_served_first(session, user, seed):
    seed.goal("small", 20, created_at=_created(0))
    seed.goal("big", 80, created_at=_created(1))

    allocations = allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 1.00)

    assert [a.goal_name for a in allocations] == ["big", "small"]


@pytest.mark.parametrize("amount", [0.07, 1.00, 13.37, 99.99])
@pytest.mark.parametrize("percents", [(50, 50), (33, 33, 34), (70, 20, 7, 3), (1, 1, 1)])
def test_shares_always_sum_to_the_deposit(session, user, seed, amount, percents):
    for i, pct in enumerate(percents):
        seed.goal(f"goal {i}", pct, created_at=_created(i))

    allocations = allocate_auto_goals_to_goals(StorageAccessor(session, user.id), amount)

    assert sum(to_cents(a.share) for a in allocations) == to_cents(amount)
    assert all(a.share > 0 for a in allocations)


def test_unselected_and_zero_percent_goals_get_nothing(session, user, seed):
    parked = seed.goal("parked", 50, selected=False)
    manual = seed.goal("manual only", 0)

    assert allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 10.00) == []
    assert seed.reload(parked).current_amount == 0
    assert seed.reload(manual).current_amount == 0


def test_other_users_goals_are_untouched(session, user, other_user, seed):
    theirs = StorageAccessor(session, other_user.id).insert_row(
        Goal, name="theirs", target_amount=10, current_amount=0, auto_savings_percent=100, is_currently_selected=True
    )
    mine = seed.goal("mine", 100)

    allocate_auto_goals_to_goals(StorageAccessor(session, user.id), 5.00)

    assert seed.reload(mine).current_amount == 5.00
    assert seed.reload(theirs).current_amount == 0


class _FailingGoalStorage(StorageAccessor):
    failing_name = "bike"

    def update_row(self, model, filters, fields):
        row = self.get_row(model, **filters)
        if row is not None and row.name == self.failing_name:
            raise StorageError("disk full")
        return super().update_row(model, filters, fields)


def test_failed_goal_does_not_stop_the_others(session, user, seed):
    house = seed.goal("house", 50, created_at=_created(0))
    bike = seed.goal("bike", 30, created_at=_created(1))
    car = seed.goal("car", 20, created_at=_created(2))

    with pytest.raises(GoalAllocationError) as exc_info:
        allocate_auto_goals_to_goals(_FailingGoalStorage(session, user.id), 10.00)

    err = exc_info.value
    assert [f["goal_name"] for f in err.failures] == ["bike"]
    assert "bike" in str(err)
    assert [a.goal_name for a in err.allocations] == ["house", "car"]
    assert seed.reload(house).current_amount == 5.00
    assert seed.reload(bike).current_amount == 0
    assert seed.reload(car).current_amount == 2.00
