import argparse
import sys
from datetime import date
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlmodel import Session, select

from daily_budget.core.errors import BudgetError
from daily_budget.database import engine
from daily_budget.models.user import User
from daily_budget.services.engine import DailyBudgetEngine


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Compute and print a user's daily budget.")
    parser.add_argument("email")
    parser.add_argument("--day", type=date.fromisoformat, default=None, help="YYYY-MM-DD, defaults to the user's today; other days are shown without booking anything")
    args = parser.parse_args(argv)

    with Session(engine) as session:
        user = session.exec(select(User).where(User.email == args.email.strip().lower())).first()
        if user is None:
            print(f"No user with email {args.email}")
            return 1

        budget_engine = DailyBudgetEngine(session)
        try:
            if args.day:
                info = budget_engine.get_budget_for_day(user, args.day)
            else:
                info = budget_engine.ensure_and_get_today_budget(user)
        except BudgetError as e:
            print(f"Budget calculation failed: {e}")
            return 2

    print(f"Budget for {info.date} ({info.days_remaining} days left in month)")
    print(f"  limit:            {info.daily_budget_limit:10.2f}")
    print(f"  spent today:      {info.todays_expenses:10.2f}")
    print(f"  left today:       {info.daily_budget_left:10.2f}")
    print(f"  auto savings:     {info.auto_savings_amount:10.2f} ({info.auto_savings_percent:g}%)")
    print(f"  auto goals:       {info.auto_goals_amount:10.2f} ({info.auto_goals_percent:g}%)")
    print(f"  available income: {info.total_available_income:10.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
