import uuid
from datetime import datetime, date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import SQLModel, Field

from ..core.security import get_current_user
from ..models.transaction import Transaction
from ..models.user import User
from ..services.engine import DailyBudgetEngine
from ..services.storage import StorageAccessor
from .deps import budget_errors_as_http, get_engine, get_storage

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)

# ─────────────────────────────
#   SCHEMAS (Pydantic/SQLModel)
# ─────────────────────────────

class TransactionBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    # Negative = income, positive = expense
    amount: float
    category: Optional[str] = Field(default=None, max_length=50)
    transaction_date: Optional[date] = Field(default=None)


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[float] = Field(default=None)
    category: Optional[str] = Field(default=None, max_length=50)
    transaction_date: Optional[date] = Field(default=None)


class TransactionRead(TransactionBase):
    id: uuid.UUID
    user_id: uuid.UUID
    transaction_date: date
    is_savings_op: bool
    auto_kind: Optional[str] = None
    created_at: datetime
    updated_at: datetime


def _get_owned_transaction(storage: StorageAccessor, transaction_id: uuid.UUID) -> Transaction:
    with budget_errors_as_http():
        tx = storage.get_row(Transaction, id=transaction_id)
    if tx is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found",
        )
    return tx


def _reject_automatic(tx: Transaction):
    if tx.is_savings_op:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Automatic deposits cannot be changed",
        )


def _is_income_on(tx_amount: float, tx_date: date, day: date) -> bool:
    return tx_amount < 0 and tx_date == day


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────

@router.post(
    "",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    tx_in: TransactionCreate,
    storage: StorageAccessor = Depends(get_storage),
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """
    Record a transaction for the authenticated user.

    - The date defaults to the user's local today.
    - An income dated today is spread over the rest of the month straight away.
    """
    if tx_in.amount == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must not be zero")

    today = engine.today_for(current_user)
    tx_date = tx_in.transaction_date or today

    with budget_errors_as_http():
        tx = storage.insert_row(
            Transaction,
            name=tx_in.name,
            amount=tx_in.amount,
            category=tx_in.category,
            transaction_date=tx_date,
            is_savings_op=False,
        )
        if _is_income_on(tx.amount, tx.transaction_date, today):
            engine.recalculate_for_variable_income(current_user, -tx.amount)
    return tx


@router.get(
    "",
    response_model=List[TransactionRead],
)
def list_transactions(
    limit: int = Query(default=50, ge=1, le=500),
    storage: StorageAccessor = Depends(get_storage),
):
    """
    Most recent transactions of the authenticated user.

    - Soft-deleted transactions are never listed.
    - Sorted by transaction date, newest first.
    """
    with budget_errors_as_http():
        return storage.query_rows(
            Transaction,
            order_by=(Transaction.transaction_date.desc(), Transaction.created_at.desc()),
            limit=limit,
        )


@router.get(
    "/{transaction_id}",
    response_model=TransactionRead,
)
def get_transaction(
    transaction_id: uuid.UUID,
    storage: StorageAccessor = Depends(get_storage),
):
    return _get_owned_transaction(storage, transaction_id)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionRead,
)
def update_transaction(
    transaction_id: uuid.UUID,
    tx_in: TransactionUpdate,
    storage: StorageAccessor = Depends(get_storage),
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """Partially update a manual transaction."""
    tx = _get_owned_transaction(storage, transaction_id)
    _reject_automatic(tx)

    fields = tx_in.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )
    if fields.get("amount") == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must not be zero")

    today = engine.today_for(current_user)
    was_income_today = _is_income_on(tx.amount, tx.transaction_date, today)

    with budget_errors_as_http():
        tx = storage.update_row(Transaction, {"id": transaction_id}, fields)
        if was_income_today or _is_income_on(tx.amount, tx.transaction_date, today):
            engine.recalculate_for_variable_income(current_user, -tx.amount)
    return tx


@router.delete(
    "/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_transaction(
    transaction_id: uuid.UUID,
    storage: StorageAccessor = Depends(get_storage),
    engine: DailyBudgetEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """
    Soft delete a manual transaction:
    - The row is kept and marked with deleted_at.
    """
    tx = _get_owned_transaction(storage, transaction_id)
    _reject_automatic(tx)
    was_income_today = _is_income_on(tx.amount, tx.transaction_date, engine.today_for(current_user))

    with budget_errors_as_http():
        storage.update_row(Transaction, {"id": transaction_id}, {"deleted_at": datetime.utcnow()})
        if was_income_today:
            engine.recalculate_for_variable_income(current_user, 0)
    return None
