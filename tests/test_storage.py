from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from daily_budget.core.errors import DuplicateKeyError, StorageError
from daily_budget.models.budget_settings import BudgetSettings
from daily_budget.models.recurring_transaction import RecurringTransaction
from daily_budget.models.transaction import Transaction
from daily_budget.services import storage as storage_module
from daily_budget.services.storage import LookupCache, StorageAccessor


DAY = date(2026, 10, 18)


def test_rows_are_scoped_to_the_user(session, user, other_user):
    mine = StorageAccessor(session, user.id)
    theirs = StorageAccessor(session, other_user.id)

    mine.insert_row(RecurringTransaction, name="salary", amount=-3000)
    theirs.insert_row(RecurringTransaction, name="salary", amount=-5000)

    assert [r.amount for r in mine.query_rows(RecurringTransaction)] == [-3000]
    assert [r.amount for r in theirs.query_rows(RecurringTransaction)] == [-5000]


def test_duplicate_settings_insert_raises_duplicate_key(session, user):
    storage = StorageAccessor(session, user.id)
    storage.insert_row(BudgetSettings, day=DAY, daily_budget_limit=10)

    with pytest.raises(DuplicateKeyError):
        storage.insert_row(BudgetSettings, day=DAY, daily_budget_limit=20)

    # the session is usable again after the failed insert
    row = storage.get_row(BudgetSettings, day=DAY)
    assert row.daily_budget_limit == 10


def test_same_day_for_different_users_is_not_a_duplicate(session, user, other_user):
    StorageAccessor(session, user.id).insert_row(BudgetSettings, day=DAY, daily_budget_limit=10)
    StorageAccessor(session, other_user.id).insert_row(BudgetSettings, day=DAY, daily_budget_limit=20)


def test_only_one_auto_deposit_of_each_kind_per_day(session, user):
    storage = StorageAccessor(session, user.id)
    fields = dict(name="Automatic savings", amount=5, transaction_date=DAY, is_savings_op=True)
    storage.insert_row(Transaction, auto_kind="savings", **fields)
    storage.insert_row(Transaction, auto_kind="goals", **fields)

    with pytest.raises(DuplicateKeyError):
        storage.insert_row(Transaction, auto_kind="savings", **fields)

    # manual entries never collide
    storage.insert_row(Transaction, name="coffee", amount=3, transaction_date=DAY)
    storage.insert_row(Transaction, name="coffee", amount=3, transaction_date=DAY)
    assert len(storage.query_rows(Transaction, transaction_date=DAY)) == 4


def test_update_row_changes_fields_and_stamps_updated_at(session, user):
    storage = StorageAccessor(session, user.id)
    row = storage.insert_row(BudgetSettings, day=DAY, daily_budget_limit=10)
    before = row.updated_at

    updated = storage.update_row(BudgetSettings, {"day": DAY}, {"daily_budget_limit": 42})

    assert updated.daily_budget_limit == 42
    assert updated.updated_at >= before


def test_update_row_without_match_raises_storage_error(session, user):
    storage = StorageAccessor(session, user.id)
    with pytest.raises(StorageError):
        storage.update_row(BudgetSettings, {"day": DAY}, {"daily_budget_limit": 1})


def test_update_cannot_reach_another_users_row(session, user, other_user):
    StorageAccessor(session, other_user.id).insert_row(BudgetSettings, day=DAY, daily_budget_limit=10)
    with pytest.raises(StorageError):
        StorageAccessor(session, user.id).update_row(BudgetSettings, {"day": DAY}, {"daily_budget_limit": 1})


def test_soft_deleted_rows_are_hidden(session, user, seed):
    seed.transaction(DAY, 10, name="kept")
    seed.transaction(DAY, 99, name="gone", deleted=True)

    storage = StorageAccessor(session, user.id)
    assert [t.name for t in storage.query_rows(Transaction)] == ["kept"]
    assert storage.get_row(Transaction, name="gone") is None


def test_delete_row(session, user):
    storage = StorageAccessor(session, user.id)
    row = storage.insert_row(RecurringTransaction, name="gym", amount=40)
    storage.delete_row(RecurringTransaction, id=row.id)
    assert storage.query_rows(RecurringTransaction) == []


def test_cached_query_is_invalidated_by_writes(session, user, seed):
    storage = StorageAccessor(session, user.id)
    assert storage.query_rows(RecurringTransaction, cached=True) == []

    # written behind the accessor's back: cache still answers
    seed.recurring(-1000)
    assert storage.query_rows(RecurringTransaction, cached=True) == []

    storage.insert_row(RecurringTransaction, name="rent", amount=500)
    amounts = sorted(r.amount for r in storage.query_rows(RecurringTransaction, cached=True))
    assert amounts == [-1000, 500]


def test_cached_query_rejects_expression_criteria(session, user):
    storage = StorageAccessor(session, user.id)
    with pytest.raises(ValueError):
        storage.query_rows(RecurringTransaction, RecurringTransaction.amount > 0, cached=True)


def test_lookup_cache_expires_entries():
    now = [0.0]
    cache = LookupCache(ttl_seconds=10, clock=lambda: now[0])
    cache.put("goals", "k", [1])
    assert cache.get("goals", "k") == [1]

    now[0] = 11
    assert cache.get("goals", "k") is None


def test_lookup_cache_invalidate_is_per_table():
    cache = LookupCache(ttl_seconds=60)
    cache.put("goals", "k", [1])
    cache.put("transactions", "k", [2])

    cache.invalidate("goals")

    assert cache.get("goals", "k") is None
    assert cache.get("transactions", "k") == [2]
    cache.clear()
    assert cache.get("transactions", "k") is None


def test_busy_database_is_retried(session, user, monkeypatch):
    monkeypatch.setattr(storage_module.time, "sleep", lambda _s: None)
    real_commit = session.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        return real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)
    row = StorageAccessor(session, user.id).insert_row(RecurringTransaction, name="salary", amount=-3000)

    assert calls["n"] == 2
    assert row.amount == -3000


def test_busy_database_gives_up_with_storage_error(session, user, monkeypatch):
    monkeypatch.setattr(storage_module.time, "sleep", lambda _s: None)

    def locked_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", locked_commit)
    with pytest.raises(StorageError) as exc_info:
        StorageAccessor(session, user.id).insert_row(RecurringTransaction, name="salary", amount=-3000)

    assert "busy" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, OperationalError)
