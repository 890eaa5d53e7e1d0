import logging
import uuid
from datetime import datetime, date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Field, SQLModel

from ..core.errors import StorageError
from ..core.security import get_current_user
from ..models.goal import Goal
from ..models.transaction import Transaction
from ..models.user import User
from ..services.arithmetic import round_up_to_cents
from ..services.engine import DailyBudgetEngine
from ..services.storage import StorageAccessor
from .deps import budget_errors_as_http, get_engine, get_storage


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/goals",
    tags=["goals"],
)

GOAL_REALIZED = "realized"


class GoalBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    target_amount: float = Field(default=0, ge=0)
    auto_savings_percent: float = Field(default=0, ge=0, le=100)
    is_currently_selected: bool = False
    url: Optional[str] = Field(default=None, max_length=2048)


class GoalCreate(GoalBase):
    pass


class GoalUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    target_amount: Optional[float] = Field(default=None, ge=0)
    auto_savings_percent: Optional[float] = Field(default=None, ge=0, le=100)
    is_currently_selected: Optional[bool] = None
    url: Optional[str] = Field(default=None, max_length=2048)


class GoalRead(GoalBase):
    id: uuid.UUID
    user_id: uuid.UUID
    current_amount: float
    decision: Optional[str] = None
    decision_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class ContributionIn(SQLModel):
    amount: float = Field(gt=0)


class RealizeIn(SQLModel):
    final_price: float = Field(gt=0)


def _get_owned_goal(storage: StorageAccessor, goal_id: uuid.UUID) -> Goal:
    with budget_errors_as_http():
        goal = storage.get_row(Goal, id=goal_id)
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")
    return goal


@router.get(
    "",
    response_model=List[GoalRead],
    status_code=status.HTTP_200_OK,
)
def list_goals(storage: StorageAccessor = Depends(get_storage)):
    with budget_errors_as_http():
        return storage.query_rows(Goal, order_by=Goal.created_at.desc())


@router.get(
    "/current",
    response_model=Optional[GoalRead],
    status_code=status.HTTP_200_OK,
)
def get_current_goal(storage: StorageAccessor = Depends(get_storage)):
    """The goal shown on the dashboard: the newest selected one, if any.

    Unrelated to how the automatic goal deposit is split, which uses every
    selected goal.
    """
    with budget_errors_as_http():
        return storage.get_row(Goal, is_currently_selected=True, order_by=Goal.created_at.desc())


@router.post(
    "",
    response_model=GoalRead,
    status_code=status.HTTP_201_CREATED,
)
def create_goal(
    payload: GoalCreate,
    storage: StorageAccessor = Depends(get_storage),
):
    with budget_errors_as_http():
        return storage.insert_row(Goal, current_amount=0, **payload.model_dump())


@router.patch(
    "/{goal_id}",
    response_model=GoalRead,
    status_code=status.HTTP_200_OK,
)
def update_goal(
    goal_id: uuid.UUID,
    payload: GoalUpdate,
    storage: StorageAccessor = Depends(get_storage),
):
    _get_owned_goal(storage, goal_id)
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    with budget_errors_as_http():
        return storage.update_row(Goal, {"id": goal_id}, fields)


@router.post(
    "/{goal_id}/contributions",
    response_model=GoalRead,
    status_code=status.HTTP_201_CREATED,
)
def contribute_to_goal(
    goal_id: uuid.UUID,
    payload: ContributionIn,
    storage: StorageAccessor = Depends(get_storage),
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """Put money aside for a goal by hand.

    Recorded as an ordinary expense for today, so it comes out of today's
    allowance, and added to the goal's balance. The balance is raised first
    and put back if the expense cannot be stored.
    """
    goal = _get_owned_goal(storage, goal_id)
    if goal.decision == GOAL_REALIZED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Goal already realized")

    amount = round_up_to_cents(payload.amount)
    previous_amount = goal.current_amount or 0
    new_amount = round_up_to_cents(previous_amount + amount)
    goal_name = goal.name

    with budget_errors_as_http():
        updated = storage.update_row(Goal, {"id": goal_id}, {"current_amount": new_amount})
        try:
            storage.insert_row(
                Transaction,
                name=f"Goal contribution: {goal_name}",
                amount=amount,
                transaction_date=engine.today_for(current_user),
                is_savings_op=False,
            )
        except StorageError:
            logger.error("Contribution to goal %s not recorded, restoring balance %.2f", goal_name, previous_amount)
            storage.update_row(Goal, {"id": goal_id}, {"current_amount": previous_amount})
            raise
        return updated


@router.post(
    "/{goal_id}/realize",
    response_model=GoalRead,
    status_code=status.HTTP_200_OK,
)
def realize_goal(
    goal_id: uuid.UUID,
    payload: RealizeIn,
    storage: StorageAccessor = Depends(get_storage),
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """Spend the money saved for a goal.

    The price comes out of the goal's balance (never below zero), the goal is
    marked realized and stops receiving automatic deposits.
    """
    goal = _get_owned_goal(storage, goal_id)
    if goal.decision == GOAL_REALIZED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Goal already realized")

    remaining = max(0.0, round((goal.current_amount or 0) - payload.final_price, 2))

    with budget_errors_as_http():
        return storage.update_row(
            Goal,
            {"id": goal_id},
            {
                "current_amount": remaining,
                "decision": GOAL_REALIZED,
                "decision_date": engine.today_for(current_user),
                "is_currently_selected": False,
            },
        )
