import uuid
from datetime import datetime, date
from typing import Optional

from sqlmodel import SQLModel, Field


class Goal(SQLModel, table=True):
    __tablename__ = "goals"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    name: str = Field(max_length=255)
    target_amount: float = Field(default=0, ge=0)
    current_amount: float = Field(default=0)

    # Share of the daily automatic goal deposit, relative to the other selected goals
    auto_savings_percent: float = Field(default=0, ge=0, le=100)
    is_currently_selected: bool = Field(default=False, index=True)

    url: Optional[str] = Field(default=None, max_length=2048)
    decision: Optional[str] = Field(default=None, max_length=50)
    decision_date: Optional[date] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
