import uuid
from datetime import datetime, date

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class BudgetSettings(SQLModel, table=True):
    __tablename__ = "budget_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_budget_settings_user_day"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    day: date = Field(index=True)

    # Base limit, before the day's automatic deposits are taken out
    daily_budget_limit: float = Field(default=0)
    auto_savings_percent: float = Field(default=0, ge=0, le=100)
    auto_goals_percent: float = Field(default=0, ge=0, le=100)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
