import calendar
import re
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Field, SQLModel

from ..core.security import get_current_user
from ..models.budget_settings import BudgetSettings
from ..models.user import User
from ..services.engine import DailyBudgetEngine, DailyBudgetInfo
from ..services.storage import StorageAccessor
from .deps import budget_errors_as_http, get_engine, get_storage


router = APIRouter(
    prefix="/budget",
    tags=["budget"],
)


_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


class PercentsUpdate(SQLModel):
    auto_savings_percent: float = Field(ge=0, le=100)
    auto_goals_percent: float = Field(ge=0, le=100)


class BudgetSettingsRead(SQLModel):
    day: date
    daily_budget_limit: float
    auto_savings_percent: float
    auto_goals_percent: float
    updated_at: datetime


@router.get(
    "/today",
    response_model=DailyBudgetInfo,
    status_code=status.HTTP_200_OK,
)
def get_today_budget(
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    with budget_errors_as_http():
        return engine.ensure_and_get_today_budget(current_user)


@router.post(
    "/today/refresh",
    response_model=DailyBudgetInfo,
    status_code=status.HTTP_200_OK,
)
def refresh_today_budget(
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    with budget_errors_as_http():
        return engine.refresh_today_budget(current_user)


@router.put(
    "/today/percents",
    response_model=DailyBudgetInfo,
    status_code=status.HTTP_200_OK,
)
def update_today_percents(
    payload: PercentsUpdate,
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """Change the automatic savings/goal percents from today on.

    Deposits already booked today are not rebooked.
    """
    with budget_errors_as_http():
        return engine.update_today_percents(
            current_user,
            payload.auto_savings_percent,
            payload.auto_goals_percent,
        )


@router.get(
    "/settings",
    response_model=List[BudgetSettingsRead],
    status_code=status.HTTP_200_OK,
)
def list_budget_settings(
    month: Optional[str] = None,
    storage: StorageAccessor = Depends(get_storage),
):
    """Per-day settings history, newest first, optionally for one month (YYYY-MM)."""
    criteria = []
    if month:
        if not _MONTH_RE.match(month):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid month")
        year, month_num = int(month[:4]), int(month[5:])
        if not 1 <= month_num <= 12:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid month")
        last_day = calendar.monthrange(year, month_num)[1]
        criteria = [
            BudgetSettings.day >= date(year, month_num, 1),
            BudgetSettings.day <= date(year, month_num, last_day),
        ]

    with budget_errors_as_http():
        return storage.query_rows(BudgetSettings, *criteria, order_by=BudgetSettings.day.desc())
