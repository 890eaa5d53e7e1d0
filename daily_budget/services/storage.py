"""User-scoped access to the budget tables.

Every read and write goes through ``StorageAccessor``, which pins queries to
one user, hides soft-deleted rows and turns SQLAlchemy failures into
``StorageError``. Each write commits on its own: there is no transaction
spanning several calls.
"""

import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from ..config import settings
from ..core.errors import DuplicateKeyError, StorageError


logger = logging.getLogger(__name__)

_PG_UNIQUE_VIOLATION = "23505"
WRITE_ATTEMPTS = 3


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == _PG_UNIQUE_VIOLATION:
        return True
    message = str(orig if orig is not None else exc).lower()
    return "unique constraint" in message or "duplicate key" in message


class LookupCache:
    """Short-lived memo of query results, keyed per table.

    Entries expire after ``ttl_seconds``; writes through the owning accessor
    call ``invalidate`` for the table they touched.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.lookup_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, Hashable], Tuple[float, Any]] = {}

    def get(self, table: str, key: Hashable) -> Optional[Any]:
        entry = self._entries.get((table, key))
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[(table, key)]
            return None
        return value

    def put(self, table: str, key: Hashable, value: Any) -> None:
        self._entries[(table, key)] = (self._clock(), value)

    def invalidate(self, table: str) -> None:
        for entry_key in [k for k in self._entries if k[0] == table]:
            del self._entries[entry_key]

    def clear(self) -> None:
        self._entries.clear()


class StorageAccessor:
    def __init__(self, session: Session, user_id: uuid.UUID, cache: Optional[LookupCache] = None):
        self.session = session
        self.user_id = user_id
        # Holds ORM rows bound to this session, so it lives and dies with the accessor
        self.cache = cache or LookupCache()

    # ─────────────────────────────
    #   Reads
    # ─────────────────────────────

    def _scoped(self, model, criteria, filters):
        stmt = select(model).where(model.user_id == self.user_id)
        if hasattr(model, "deleted_at"):
            stmt = stmt.where(model.deleted_at.is_(None))
        for criterion in criteria:
            stmt = stmt.where(criterion)
        for name, value in filters.items():
            stmt = stmt.where(getattr(model, name) == value)
        return stmt

    def _ordered(self, stmt, order_by):
        if order_by is None:
            return stmt
        if isinstance(order_by, (list, tuple)):
            return stmt.order_by(*order_by)
        return stmt.order_by(order_by)

    def get_row(self, model, *criteria, order_by=None, **filters):
        stmt = self._ordered(self._scoped(model, criteria, filters), order_by)
        try:
            return self.session.exec(stmt).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Failed to read {model.__tablename__}", details=str(e)) from e

    def query_rows(
        self,
        model,
        *criteria,
        order_by=None,
        limit: Optional[int] = None,
        cached: bool = False,
        **filters,
    ) -> List[Any]:
        if cached and criteria:
            raise ValueError("Only keyword-filtered queries can be cached")

        table = model.__tablename__
        key = (tuple(sorted((k, str(v)) for k, v in filters.items())), str(order_by), limit)
        if cached:
            hit = self.cache.get(table, key)
            if hit is not None:
                return hit

        stmt = self._ordered(self._scoped(model, criteria, filters), order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            rows = list(self.session.exec(stmt).all())
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Failed to query {table}", details=str(e)) from e

        if cached:
            self.cache.put(table, key, rows)
        return rows

    # ─────────────────────────────
    #   Writes
    # ─────────────────────────────

    def _write(self, model, action: str, apply: Callable[[], Any]):
        """Run ``apply`` and commit, retrying while SQLite reports a busy database.

        ``apply`` is re-run on every attempt because a rollback discards the
        pending changes.
        """
        table = model.__tablename__
        for attempt in range(WRITE_ATTEMPTS):
            try:
                row = apply()
                self.session.commit()
                if row is not None:
                    self.session.refresh(row)
                self.cache.invalidate(table)
                return row
            except IntegrityError as e:
                self.session.rollback()
                if is_unique_violation(e):
                    raise DuplicateKeyError(f"Duplicate {table} row", details=str(e.orig)) from e
                raise StorageError(f"Failed to {action} {table}", details=str(e.orig)) from e
            except OperationalError as e:
                self.session.rollback()
                if attempt == WRITE_ATTEMPTS - 1:
                    raise StorageError(f"Database is busy, failed to {action} {table}", details=str(e)) from e
                logger.warning("Database busy on %s %s, attempt %d", action, table, attempt + 1)
                time.sleep(0.25 * (attempt + 1))
            except SQLAlchemyError as e:
                self.session.rollback()
                raise StorageError(f"Failed to {action} {table}", details=str(e)) from e

    def insert_row(self, model, **fields):
        def apply():
            row = model(user_id=self.user_id, **fields)
            self.session.add(row)
            return row

        return self._write(model, "insert", apply)

    def update_row(self, model, filters: Dict[str, Any], fields: Dict[str, Any]):
        def apply():
            row = self.session.exec(self._scoped(model, (), filters)).first()
            if row is None:
                raise StorageError(f"No {model.__tablename__} row matches {filters}")
            for name, value in fields.items():
                setattr(row, name, value)
            if hasattr(row, "updated_at"):
                row.updated_at = datetime.utcnow()
            self.session.add(row)
            return row

        return self._write(model, "update", apply)

    def delete_row(self, model, **filters) -> None:
        def apply():
            row = self.session.exec(self._scoped(model, (), filters)).first()
            if row is None:
                raise StorageError(f"No {model.__tablename__} row matches {filters}")
            self.session.delete(row)
            return None

        self._write(model, "delete", apply)

    def invalidate(self, model) -> None:
        self.cache.invalidate(model.__tablename__)
