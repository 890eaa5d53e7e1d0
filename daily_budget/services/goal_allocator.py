import logging
import uuid
from dataclasses import dataclass
from typing import List

from ..core.errors import GoalAllocationError, StorageError
from ..models.goal import Goal
from .arithmetic import from_cents, round_up_to_cents, to_cents
from .storage import StorageAccessor


logger = logging.getLogger(__name__)

# Goals whose balance would move by less than this are left untouched
_MIN_CHANGE = 0.005


@dataclass
class GoalAllocation:
    goal_id: uuid.UUID
    goal_name: str
    share: float
    previous_amount: float
    new_amount: float


def allocate_auto_goals_to_goals(storage: StorageAccessor, auto_goals_amount: float) -> List[GoalAllocation]:
    """Split the day's automatic goal deposit across the selected goals.

    Each goal gets a share proportional to its ``auto_savings_percent``. Shares
    are computed in whole cents, rounded up, and the last goal takes whatever
    is left, so the shares always add up to the deposit exactly.

    A goal that fails to update does not stop the others; the failures are
    raised together as ``GoalAllocationError`` once every goal was tried.
    """
    goals = storage.query_rows(
        Goal,
        Goal.auto_savings_percent > 0,
        is_currently_selected=True,
        order_by=(Goal.auto_savings_percent.desc(), Goal.created_at, Goal.id),
    )
    if not goals:
        logger.debug("No selected goals to receive %.2f", auto_goals_amount)
        return []

    total_percent = sum(g.auto_savings_percent or 0 for g in goals)
    if total_percent <= 0:
        return []

    total_cents = to_cents(round_up_to_cents(auto_goals_amount))
    remaining_cents = total_cents
    allocations: List[GoalAllocation] = []
    failures: List[dict] = []

    for index, goal in enumerate(goals):
        if index == len(goals) - 1:
            share_cents = remaining_cents
        else:
            share_cents = to_cents(from_cents(total_cents) * goal.auto_savings_percent / total_percent)
            share_cents = min(share_cents, remaining_cents)
        remaining_cents -= share_cents

        current_amount = goal.current_amount or 0
        new_amount = round_up_to_cents(current_amount + from_cents(share_cents))
        if abs(new_amount - current_amount) < _MIN_CHANGE:
            logger.debug("Skipping goal %s, share rounds to zero", goal.name)
            continue

        logger.debug(
            "Crediting goal %s: %.2f -> %.2f (share %.2f)",
            goal.name, current_amount, new_amount, from_cents(share_cents),
        )
        goal_id, goal_name = goal.id, goal.name
        try:
            storage.update_row(Goal, {"id": goal_id}, {"current_amount": new_amount})
        except StorageError as e:
            logger.error("Failed to credit goal %s: %s", goal_name, e)
            failures.append({"goal_id": goal_id, "goal_name": goal_name, "error": str(e)})
            continue

        allocations.append(
            GoalAllocation(
                goal_id=goal_id,
                goal_name=goal_name,
                share=from_cents(share_cents),
                previous_amount=current_amount,
                new_amount=new_amount,
            )
        )

    if failures:
        raise GoalAllocationError(failures, allocations)
    return allocations
