"""Daily budget engine.

For a user and a calendar day the engine derives the day's spending limit
from three sources:

- the even daily share of the recurring monthly cash flow,
- yesterday's unspent (or overspent) allowance, spread over the days left,
- today's variable income, spread over the days left.

The first caller of the day creates the day's ``BudgetSettings`` row and,
only then, books the automatic savings and goal deposits and credits the
selected goals. Every later caller re-derives and overwrites the numbers but
never books the deposits again. Who creates the row is decided by the
``(user_id, day)`` unique constraint: an insert that collides means another
caller got there first.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Tuple

from sqlmodel import SQLModel

from ..config import settings
from ..core.errors import DuplicateKeyError, NotAuthenticated, StorageError
from ..models.budget_settings import BudgetSettings
from ..models.recurring_transaction import RecurringTransaction
from ..models.transaction import AUTO_KIND_GOALS, AUTO_KIND_SAVINGS, Transaction
from ..models.user import User
from . import arithmetic
from .goal_allocator import allocate_auto_goals_to_goals
from .storage import StorageAccessor


logger = logging.getLogger(__name__)


class DailyBudgetInfo(SQLModel):
    # Limit net of today's automatic deposits
    daily_budget_limit: float
    daily_budget_left: float
    todays_expenses: float
    days_remaining: int
    total_available_income: float
    date: date
    auto_savings_amount: float = 0
    auto_goals_amount: float = 0
    auto_savings_percent: float = 0
    auto_goals_percent: float = 0
    auto_savings_month_sum: float = 0
    auto_goals_month_sum: float = 0


@dataclass
class DayFigures:
    """Derived numbers for one day, before anything is stored."""

    daily_budget_limit: float
    auto_savings_percent: float
    auto_goals_percent: float
    auto_savings_amount: float
    auto_goals_amount: float


class DailyBudgetEngine:
    def __init__(
        self,
        session,
        now: Optional[Callable[[], datetime]] = None,
        storage_factory: Callable[..., StorageAccessor] = StorageAccessor,
    ):
        self.session = session
        self._now = now
        self.storage_factory = storage_factory

    def _storage(self, user: Optional[User]) -> StorageAccessor:
        if user is None:
            raise NotAuthenticated()
        return self.storage_factory(self.session, user.id)

    def today_for(self, user: User) -> date:
        now = self._now() if self._now else None
        return arithmetic.local_today(user.timezone or settings.default_timezone, now)

    # ─────────────────────────────
    #   Public operations
    # ─────────────────────────────

    def ensure_and_get_today_budget(self, user: Optional[User]) -> DailyBudgetInfo:
        storage = self._storage(user)
        today = self.today_for(user)
        self._calculate_daily_budget(storage, today)
        return self._build_daily_budget_info(storage, today)

    def refresh_today_budget(self, user: Optional[User]) -> DailyBudgetInfo:
        return self.ensure_and_get_today_budget(user)

    def recalculate_for_variable_income(self, user: Optional[User], income_amount: float) -> None:
        """Re-derive today's budget after a variable income was stored.

        The income itself is read back from the ledger; ``income_amount`` is
        only reported in the log.
        """
        storage = self._storage(user)
        today = self.today_for(user)
        logger.info("Recalculating %s budget for user %s after income %.2f", today, user.id, income_amount)
        self._calculate_daily_budget(storage, today)

    def get_budget_for_day(self, user: Optional[User], day: date) -> DailyBudgetInfo:
        """Budget view for any day.

        For the user's today this is ``ensure_and_get_today_budget``. Any other
        day is read only: a stored row is shown as it is, a day without one is
        projected from the current data without storing a row, booking
        deposits or crediting goals.
        """
        storage = self._storage(user)
        if day == self.today_for(user):
            self._calculate_daily_budget(storage, day)
            return self._build_daily_budget_info(storage, day)

        if storage.get_row(BudgetSettings, day=day) is not None:
            return self._build_daily_budget_info(storage, day)
        logger.debug("No budget settings for user %s on %s, projecting", user.id, day)
        return self._build_daily_budget_info(storage, day, projected=self._derive_figures(storage, day, None))

    def update_today_percents(
        self,
        user: Optional[User],
        auto_savings_percent: float,
        auto_goals_percent: float,
    ) -> DailyBudgetInfo:
        """Store new automatic deposit percents for today.

        They are shown from now on and seed tomorrow's row. Deposits already
        booked today stay as they are.
        """
        for value in (auto_savings_percent, auto_goals_percent):
            if not 0 <= value <= 100:
                raise ValueError("Percent must be between 0 and 100")

        storage = self._storage(user)
        today = self.today_for(user)
        self._calculate_daily_budget(storage, today)
        storage.update_row(
            BudgetSettings,
            {"day": today},
            {"auto_savings_percent": auto_savings_percent, "auto_goals_percent": auto_goals_percent},
        )
        return self._build_daily_budget_info(storage, today)

    # ─────────────────────────────
    #   Calculation
    # ─────────────────────────────

    def _resolve_percents(
        self,
        storage: StorageAccessor,
        day: date,
        today_setting: Optional[BudgetSettings],
        yesterday_setting: Optional[BudgetSettings],
    ) -> Tuple[float, float]:
        # Percents are fixed for the day once the row exists
        if today_setting is not None:
            return today_setting.auto_savings_percent or 0, today_setting.auto_goals_percent or 0

        source = yesterday_setting
        if source is None:
            # Day 1 or a gap in history: carry the latest known configuration over
            source = storage.get_row(
                BudgetSettings,
                BudgetSettings.day < day,
                order_by=BudgetSettings.day.desc(),
            )
        if source is None:
            return 0.0, 0.0
        return source.auto_savings_percent or 0, source.auto_goals_percent or 0

    def _derive_figures(
        self,
        storage: StorageAccessor,
        day: date,
        today_setting: Optional[BudgetSettings],
    ) -> DayFigures:
        days_in_month = arithmetic.days_in_month(day)
        remaining_days = arithmetic.remaining_days_in_month(day)
        yesterday = arithmetic.previous_day_in_month(day)

        recurring = storage.query_rows(RecurringTransaction, cached=True)
        base_from_fixed = arithmetic.base_from_recurring([r.amount or 0 for r in recurring], days_in_month)

        yesterday_setting = storage.get_row(BudgetSettings, day=yesterday) if yesterday else None

        if yesterday_setting is None:
            leftover_today = 0.0
            new_base_before_autos = base_from_fixed
        else:
            yesterday_base = yesterday_setting.daily_budget_limit or 0
            yesterday_tx = storage.query_rows(Transaction, transaction_date=yesterday)
            # Automatic deposits count as spent when carrying over
            spent_yesterday = arithmetic.variable_expense_sum(yesterday_tx, include_savings_ops=True)
            leftover_today = arithmetic.leftover_contribution(yesterday_base, spent_yesterday, remaining_days)
            new_base_before_autos = yesterday_base + leftover_today

        auto_savings_percent, auto_goals_percent = self._resolve_percents(
            storage, day, today_setting, yesterday_setting
        )
        auto_savings_amount = arithmetic.round_up_to_cents(new_base_before_autos * auto_savings_percent / 100)
        auto_goals_amount = arithmetic.round_up_to_cents(new_base_before_autos * auto_goals_percent / 100)

        # Computed after the autos so a windfall does not inflate today's deposits
        today_tx = storage.query_rows(Transaction, transaction_date=day)
        income_today = arithmetic.income_distribution(arithmetic.variable_income_sum(today_tx), remaining_days)
        base_after_incomes = new_base_before_autos + income_today

        logger.debug(
            "Budget %s: fixed=%.4f leftover=%.4f income=%.4f base=%.4f autos=%.2f/%.2f",
            day, base_from_fixed, leftover_today, income_today, base_after_incomes,
            auto_savings_amount, auto_goals_amount,
        )
        return DayFigures(
            daily_budget_limit=base_after_incomes,
            auto_savings_percent=auto_savings_percent,
            auto_goals_percent=auto_goals_percent,
            auto_savings_amount=auto_savings_amount,
            auto_goals_amount=auto_goals_amount,
        )

    def _calculate_daily_budget(self, storage: StorageAccessor, day: date) -> Tuple[BudgetSettings, bool]:
        """Derive and persist ``day``'s settings row.

        Returns the stored row and whether this call created it. A caller that
        loses the creation race only updates the row; until the winner has
        booked the deposits, the view such a caller builds shows none.
        """
        today_setting = storage.get_row(BudgetSettings, day=day)
        is_new_daily_budget = today_setting is None

        figures = self._derive_figures(storage, day, today_setting)
        fields = {
            "daily_budget_limit": figures.daily_budget_limit,
            "auto_savings_percent": figures.auto_savings_percent,
            "auto_goals_percent": figures.auto_goals_percent,
        }
        created = False
        if is_new_daily_budget:
            try:
                setting = storage.insert_row(BudgetSettings, day=day, **fields)
                created = True
                logger.info("Created budget settings for user %s on %s", storage.user_id, day)
            except DuplicateKeyError:
                logger.info("Budget settings for user %s on %s created concurrently, refreshing", storage.user_id, day)
                setting = storage.update_row(BudgetSettings, {"day": day}, fields)
        else:
            setting = storage.update_row(BudgetSettings, {"day": day}, fields)

        if created:
            self._book_auto_transactions(storage, day, figures.auto_savings_amount, figures.auto_goals_amount)
            goals_tx = storage.get_row(Transaction, transaction_date=day, auto_kind=AUTO_KIND_GOALS)
            stored_goals_amount = goals_tx.amount if goals_tx is not None else 0
            if stored_goals_amount > 0:
                allocate_auto_goals_to_goals(storage, stored_goals_amount)

        return setting, created

    def _book_auto_transactions(
        self,
        storage: StorageAccessor,
        day: date,
        auto_savings_amount: float,
        auto_goals_amount: float,
    ) -> None:
        deposits = (
            (AUTO_KIND_SAVINGS, settings.auto_savings_name, auto_savings_amount),
            (AUTO_KIND_GOALS, settings.auto_goals_name, auto_goals_amount),
        )
        for kind, name, amount in deposits:
            if amount <= 0:
                continue
            try:
                storage.insert_row(
                    Transaction,
                    name=name,
                    amount=amount,
                    transaction_date=day,
                    is_savings_op=True,
                    auto_kind=kind,
                )
            except DuplicateKeyError:
                logger.warning("Automatic %s deposit for %s already booked", kind, day)

    # ─────────────────────────────
    #   Public view
    # ─────────────────────────────

    def _build_daily_budget_info(
        self,
        storage: StorageAccessor,
        day: date,
        projected: Optional[DayFigures] = None,
    ) -> DailyBudgetInfo:
        """Public view of ``day``, from the stored row or from ``projected`` figures."""
        today_tx = storage.query_rows(Transaction, transaction_date=day)
        setting = storage.get_row(BudgetSettings, day=day)
        if setting is not None:
            base = setting.daily_budget_limit or 0
            auto_savings_percent = setting.auto_savings_percent or 0
            auto_goals_percent = setting.auto_goals_percent or 0
            auto_savings_amount = sum(tx.amount for tx in today_tx if tx.auto_kind == AUTO_KIND_SAVINGS)
            auto_goals_amount = sum(tx.amount for tx in today_tx if tx.auto_kind == AUTO_KIND_GOALS)
            # stored deposits are already part of the month's ledger
            pending_savings = pending_goals = 0.0
        elif projected is not None:
            base = projected.daily_budget_limit
            auto_savings_percent = projected.auto_savings_percent
            auto_goals_percent = projected.auto_goals_percent
            auto_savings_amount = pending_savings = projected.auto_savings_amount
            auto_goals_amount = pending_goals = projected.auto_goals_amount
        else:
            raise StorageError(f"Budget settings for {day} are missing")

        daily_budget_limit = base - auto_savings_amount - auto_goals_amount
        todays_expenses = arithmetic.variable_expense_sum(today_tx, include_savings_ops=False)

        recurring = storage.query_rows(RecurringTransaction, cached=True)
        monthly_net_available = -sum(r.amount or 0 for r in recurring)

        month_tx = storage.query_rows(
            Transaction,
            Transaction.transaction_date >= arithmetic.first_day_of_month(day),
            Transaction.transaction_date <= day,
        )
        variable_incomes_mtd = -arithmetic.variable_income_sum(month_tx)

        return DailyBudgetInfo(
            daily_budget_limit=daily_budget_limit,
            daily_budget_left=daily_budget_limit - todays_expenses,
            todays_expenses=todays_expenses,
            days_remaining=arithmetic.remaining_days_in_month(day),
            total_available_income=monthly_net_available + variable_incomes_mtd,
            date=day,
            auto_savings_amount=auto_savings_amount,
            auto_goals_amount=auto_goals_amount,
            auto_savings_percent=auto_savings_percent,
            auto_goals_percent=auto_goals_percent,
            auto_savings_month_sum=pending_savings
            + sum(tx.amount for tx in month_tx if tx.auto_kind == AUTO_KIND_SAVINGS),
            auto_goals_month_sum=pending_goals
            + sum(tx.amount for tx in month_tx if tx.auto_kind == AUTO_KIND_GOALS),
        )
