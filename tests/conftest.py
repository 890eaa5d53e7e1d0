import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ["DEFAULT_TIMEZONE"] = "UTC"

from datetime import date, datetime, timezone

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select

from daily_budget.core.security import hash_password
from daily_budget.database import get_session, init_db
from daily_budget.main import create_app
from daily_budget.models.budget_settings import BudgetSettings
from daily_budget.models.goal import Goal
from daily_budget.models.recurring_transaction import RecurringTransaction
from daily_budget.models.transaction import Transaction
from daily_budget.models.user import User
from daily_budget.routers.deps import get_engine
from daily_budget.services.engine import DailyBudgetEngine


API_TODAY = date(2026, 10, 22)


def clock_at(day: date, hour: int = 12):
    return lambda: datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


class Seeder:
    """Writes fixture rows straight through the session."""

    def __init__(self, session: Session, user: User):
        self.session = session
        self.user = user

    def _add(self, row):
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def recurring(self, *amounts):
        return [
            self._add(RecurringTransaction(user_id=self.user.id, name=f"recurring {i}", amount=a))
            for i, a in enumerate(amounts)
        ]

    def transaction(self, day, amount, name="manual", is_savings_op=False, auto_kind=None, deleted=False):
        return self._add(
            Transaction(
                user_id=self.user.id,
                name=name,
                amount=amount,
                transaction_date=day,
                is_savings_op=is_savings_op,
                auto_kind=auto_kind,
                deleted_at=datetime.utcnow() if deleted else None,
            )
        )

    def settings(self, day, base, savings_percent=0, goals_percent=0):
        return self._add(
            BudgetSettings(
                user_id=self.user.id,
                day=day,
                daily_budget_limit=base,
                auto_savings_percent=savings_percent,
                auto_goals_percent=goals_percent,
            )
        )

    def goal(self, name, percent, current=0.0, selected=True, created_at=None):
        goal = Goal(
            user_id=self.user.id,
            name=name,
            target_amount=1000,
            current_amount=current,
            auto_savings_percent=percent,
            is_currently_selected=selected,
        )
        if created_at is not None:
            goal.created_at = created_at
        return self._add(goal)

    def settings_rows(self):
        return self.session.exec(
            select(BudgetSettings).where(BudgetSettings.user_id == self.user.id)
        ).all()

    def auto_transactions(self, day):
        return self.session.exec(
            select(Transaction).where(
                Transaction.user_id == self.user.id,
                Transaction.transaction_date == day,
                Transaction.is_savings_op.is_(True),
            )
        ).all()

    def reload(self, row):
        self.session.refresh(row)
        return row


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as session:
        yield session


def _make_user(session, email, tz="UTC"):
    user = User(email=email, hashed_password=hash_password("secret1"), timezone=tz)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def user(session):
    return _make_user(session, "ana@example.com")


@pytest.fixture
def other_user(session):
    return _make_user(session, "bo@example.com")


@pytest.fixture
def seed(session, user):
    return Seeder(session, user)


@pytest.fixture
def client(db_engine):
    app = create_app()

    def override_session():
        with Session(db_engine) as session:
            yield session

    def override_engine(session: Session = Depends(get_session)):
        return DailyBudgetEngine(session, now=clock_at(API_TODAY))

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_engine] = override_engine
    return TestClient(app)


@pytest.fixture
def auth_client(client):
    resp = client.post("/auth/register", json={"email": "ana@example.com", "password": "secret1"})
    assert resp.status_code == 201
    resp = client.post("/auth/token", data={"username": "ana@example.com", "password": "secret1"})
    assert resp.status_code == 200
    client.headers.update({"Authorization": f"Bearer {resp.json()['access_token']}"})
    return client
