from typing import Any, List, Optional


class BudgetError(Exception):
    """Base class for errors raised by the budget core."""


class NotAuthenticated(BudgetError):
    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class StorageError(BudgetError):
    """A read or write against the database failed.

    ``details`` carries whatever the driver reported; the original exception
    is chained as ``__cause__``.
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class DuplicateKeyError(StorageError):
    """An insert hit a uniqueness constraint."""


class GoalAllocationError(BudgetError):
    """One or more goals could not be credited with their share.

    Goals listed in ``allocations`` were updated and stay updated.
    """

    def __init__(self, failures: List[dict], allocations: Optional[list] = None):
        names = ", ".join(str(f.get("goal_name") or f.get("goal_id")) for f in failures)
        super().__init__(f"Failed to allocate automatic goal deposit to: {names}")
        self.failures = failures
        self.allocations = allocations or []
