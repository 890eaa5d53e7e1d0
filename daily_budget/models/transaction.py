import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


AUTO_KIND_SAVINGS = "savings"
AUTO_KIND_GOALS = "goals"


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"
    # NULL auto_kind never collides, so only engine deposits are limited to one per kind per day
    __table_args__ = (
        UniqueConstraint("user_id", "transaction_date", "auto_kind", name="uq_transactions_user_day_auto_kind"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True
    )

    name: str
    # Negative = income, positive = expense
    amount: float
    category: Optional[str] = Field(default=None, max_length=50)
    transaction_date: date = Field(default_factory=date.today, index=True)

    is_savings_op: bool = Field(default=False)
    auto_kind: Optional[str] = Field(default=None, max_length=16)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = Field(default=None)
