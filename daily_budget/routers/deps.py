from contextlib import contextmanager

from fastapi import Depends, HTTPException, status
from sqlmodel import Session

from ..core.errors import GoalAllocationError, NotAuthenticated, StorageError
from ..core.security import get_current_user
from ..database import get_session
from ..models.user import User
from ..services.engine import DailyBudgetEngine
from ..services.storage import StorageAccessor


def get_engine(session: Session = Depends(get_session)) -> DailyBudgetEngine:
    return DailyBudgetEngine(session)


def get_storage(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> StorageAccessor:
    return StorageAccessor(session, current_user.id)


@contextmanager
def budget_errors_as_http():
    """Translate core errors into HTTP responses."""
    try:
        yield
    except NotAuthenticated as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e)) from e
    except GoalAllocationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": str(e),
                "failed_goals": [str(f["goal_id"]) for f in e.failures],
            },
        ) from e
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message) from e
