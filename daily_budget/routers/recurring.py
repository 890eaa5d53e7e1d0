import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Field, SQLModel

from ..models.recurring_transaction import RecurringTransaction
from ..services.storage import StorageAccessor
from .deps import budget_errors_as_http, get_storage


router = APIRouter(
    prefix="/recurring",
    tags=["recurring"],
)


class RecurringBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    # Monthly amount. Negative = income, positive = expense
    amount: float


class RecurringCreate(RecurringBase):
    pass


class RecurringUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[float] = None


class RecurringRead(RecurringBase):
    id: uuid.UUID
    user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


def _get_owned(storage: StorageAccessor, recurring_id: uuid.UUID) -> RecurringTransaction:
    with budget_errors_as_http():
        row = storage.get_row(RecurringTransaction, id=recurring_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring transaction not found")
    return row


@router.get(
    "",
    response_model=List[RecurringRead],
    status_code=status.HTTP_200_OK,
)
def list_recurring(storage: StorageAccessor = Depends(get_storage)):
    with budget_errors_as_http():
        return storage.query_rows(
            RecurringTransaction,
            order_by=(RecurringTransaction.amount.asc(), RecurringTransaction.name.asc()),
        )


@router.post(
    "",
    response_model=RecurringRead,
    status_code=status.HTTP_201_CREATED,
)
def create_recurring(
    payload: RecurringCreate,
    storage: StorageAccessor = Depends(get_storage),
):
    if payload.amount == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must not be zero")

    with budget_errors_as_http():
        return storage.insert_row(RecurringTransaction, name=payload.name, amount=payload.amount)


@router.patch(
    "/{recurring_id}",
    response_model=RecurringRead,
    status_code=status.HTTP_200_OK,
)
def update_recurring(
    recurring_id: uuid.UUID,
    payload: RecurringUpdate,
    storage: StorageAccessor = Depends(get_storage),
):
    _get_owned(storage, recurring_id)

    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    if fields.get("amount") == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must not be zero")

    with budget_errors_as_http():
        return storage.update_row(RecurringTransaction, {"id": recurring_id}, fields)


@router.delete(
    "/{recurring_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_recurring(
    recurring_id: uuid.UUID,
    storage: StorageAccessor = Depends(get_storage),
):
    _get_owned(storage, recurring_id)
    with budget_errors_as_http():
        storage.delete_row(RecurringTransaction, id=recurring_id)
    return None
