import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from ..config import settings


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    email: str = Field(index=True, unique=True)
    hashed_password: str

    # IANA zone name; decides which calendar day "today" is for this user
    timezone: str = Field(default=settings.default_timezone, max_length=64)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    deleted_at: Optional[datetime] = Field(default=None)
