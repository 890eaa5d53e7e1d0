import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field


class RecurringTransaction(SQLModel, table=True):
    __tablename__ = "recurring_transactions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    name: str = Field(max_length=255)
    # Applies every month. Negative = income, positive = expense
    amount: float

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
