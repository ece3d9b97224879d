from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from budgets import BudgetResolver, BudgetScope, log_anomaly, scope_for
from config import get_settings
from errors import (
    BudgetNotFound,
    CategoryNotFound,
    DataIntegrityAnomaly,
    TransactionNotFound,
)
from models import Budget, Category, Transaction
from money import to_cents
from periods import (
    Period,
    current_month,
    format_month,
    local_tz,
    month_period,
    to_utc_naive,
)
from schemas import BudgetIn, BudgetLimitIn, CategoryIn, TransactionIn
from spending import SpendingAggregator, WeeklySpending
from stores import SqlBudgetStore, SqlTransactionStore, storage_call

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.name)
        )
        with storage_call(self.session, "list_categories"):
            return list(self.session.scalars(stmt).all())

    def get(self, category_id: int) -> Category:
        with storage_call(self.session, "get_category"):
            category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise CategoryNotFound("Category not found")
        return category

    def _name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        with storage_call(self.session, "find_category"):
            return self.session.scalar(stmt) is not None

    def _commit(self, category: Category, operation: str) -> None:
        try:
            with storage_call(self.session, operation):
                self.session.commit()
                self.session.refresh(category)
        except IntegrityError as exc:
            # a concurrent write took the name after the lookup above
            self.session.rollback()
            raise ValueError("Category with this name already exists") from exc

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise ValueError("Category name cannot be empty")
        if self._name_taken(name):
            raise ValueError("Category with this name already exists")
        category = Category(
            user_id=self.user_id, name=name, description=data.description
        )
        self.session.add(category)
        self._commit(category, "create_category")
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        name = data.name.strip()
        if not name:
            raise ValueError("Category name cannot be empty")
        if self._name_taken(name, exclude_id=category.id):
            raise ValueError("Category with this name already exists")
        category.name = name
        category.description = data.description
        self._commit(category, "update_category")
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if SqlTransactionStore(self.session).count_for_category(
            self.user_id, category.id
        ):
            raise ValueError("Category still has transactions")
        if SqlBudgetStore(self.session).count_for_category(self.user_id, category.id):
            raise ValueError("Category still has budgets")
        with storage_call(self.session, "delete_category"):
            self.session.delete(category)
            self.session.commit()


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.store = SqlTransactionStore(session)

    def create(self, data: TransactionIn) -> Transaction:
        CategoryService(self.session, self.user_id).get(data.category_id)
        txn = Transaction(
            user_id=self.user_id,
            category_id=data.category_id,
            amount_cents=to_cents(data.amount),
            description=data.description,
            transaction_date=to_utc_naive(data.transaction_date),
        )
        return self.store.create(txn)

    def get(self, transaction_id: int) -> Transaction:
        txn = self.store.get(transaction_id)
        # a foreign row is reported exactly like a missing one
        if txn is None or txn.user_id != self.user_id:
            raise TransactionNotFound("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        if data.category_id != txn.category_id:
            CategoryService(self.session, self.user_id).get(data.category_id)
        txn.category_id = data.category_id
        txn.amount_cents = to_cents(data.amount)
        txn.description = data.description
        txn.transaction_date = to_utc_naive(data.transaction_date)
        return self.store.update(txn)

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.store.delete(txn)

    def list_for_user(self, period: Optional[Period] = None) -> list[Transaction]:
        return self.store.find_transactions(self.user_id, period, newest_first=True)

    def list_by_category(self, category_id: int) -> list[Transaction]:
        return self.store.find_transactions(
            self.user_id, category_id=category_id, newest_first=True
        )

    def weekly_spending(
        self,
        as_of: Optional[datetime] = None,
        window_weeks: Optional[int] = None,
    ) -> list[WeeklySpending]:
        settings = get_settings()
        if window_weeks is None:
            window_weeks = settings.weekly_window_weeks
        aggregator = SpendingAggregator(self.store, local_tz(settings.timezone))
        return aggregator.weekly_spending(
            self.user_id, as_of or datetime.now(timezone.utc), window_weeks
        )


@dataclass(frozen=True)
class BudgetSummary:
    budget: Budget
    spent_cents: int

    @property
    def remaining_cents(self) -> int:
        return self.budget.limit_amount_cents - self.spent_cents


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.store = SqlBudgetStore(session)
        self.resolver = BudgetResolver(self.store, on_anomaly=log_anomaly)

    def _month_or_current(
        self, month: Optional[Union[int, str]], year: Optional[int]
    ) -> tuple[str, int]:
        this_month, this_year = current_month()
        budget_month = format_month(month) if month is not None else this_month
        return budget_month, year if year is not None else this_year

    def set_budget(self, data: BudgetIn) -> Budget:
        """Create the budget for a scope and month, or replace its limit."""
        if data.category_id is not None:
            CategoryService(self.session, self.user_id).get(data.category_id)
        scope = scope_for(data.category_id)
        limit_cents = to_cents(data.limit_amount)

        existing = self.store.find_budget(
            self.user_id, scope, data.budget_month, data.budget_year
        )
        if existing:
            existing.limit_amount_cents = limit_cents
            return self.store.save(existing)

        budget = Budget(
            user_id=self.user_id,
            category_id=data.category_id,
            budget_month=data.budget_month,
            budget_year=data.budget_year,
            limit_amount_cents=limit_cents,
        )
        try:
            return self.store.save(budget)
        except IntegrityError:
            # another request created the scope first; the store's unique
            # indexes decided the winner, so update that row instead
            self.session.rollback()
            logger.info(
                f"budget_upsert_race: user_id={self.user_id} scope={scope} "
                f"period={data.budget_year}-{data.budget_month}"
            )
            winner = self.store.find_budget(
                self.user_id, scope, data.budget_month, data.budget_year
            )
            if winner is None:
                raise
            winner.limit_amount_cents = limit_cents
            return self.store.save(winner)

    def get(self, budget_id: int) -> Budget:
        budget = self.store.get(budget_id)
        if budget is None or budget.user_id != self.user_id:
            raise BudgetNotFound("Budget not found")
        return budget

    def update_limit(self, budget_id: int, data: BudgetLimitIn) -> Budget:
        budget = self.get(budget_id)
        budget.limit_amount_cents = to_cents(data.limit_amount)
        return self.store.save(budget)

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.store.delete(budget)

    def list_for_month(
        self, month: Optional[Union[int, str]] = None, year: Optional[int] = None
    ) -> list[Budget]:
        budget_month, budget_year = self._month_or_current(month, year)
        return self.store.list_for_month(self.user_id, budget_month, budget_year)

    def get_budget(
        self,
        scope: BudgetScope,
        month: Optional[Union[int, str]] = None,
        year: Optional[int] = None,
    ) -> Budget:
        budget_month, budget_year = self._month_or_current(month, year)
        return self.resolver.resolve(self.user_id, scope, budget_month, budget_year)

    def summary(
        self,
        scope: BudgetScope,
        month: Optional[Union[int, str]] = None,
        year: Optional[int] = None,
    ) -> BudgetSummary:
        budget = self.get_budget(scope, month, year)
        return BudgetSummary(budget=budget, spent_cents=self._spent(budget))

    def summaries_for_month(
        self, month: Optional[Union[int, str]] = None, year: Optional[int] = None
    ) -> list[BudgetSummary]:
        summaries: list[BudgetSummary] = []
        seen: set[Optional[int]] = set()
        for budget in self.list_for_month(month, year):
            # rows arrive newest first per scope; older duplicates are skipped
            if budget.category_id in seen:
                continue
            seen.add(budget.category_id)
            summaries.append(
                BudgetSummary(budget=budget, spent_cents=self._spent(budget))
            )
        return summaries

    def _spent(self, budget: Budget) -> int:
        aggregator = SpendingAggregator(SqlTransactionStore(self.session))
        period = month_period(budget.budget_month, budget.budget_year)
        return aggregator.total_for_period(self.user_id, period, budget.scope)


def audit_budget_scopes(session: Session) -> list[DataIntegrityAnomaly]:
    """Log every budget scope that holds more than one row, across all users."""
    store = SqlBudgetStore(session)
    anomalies: list[DataIntegrityAnomaly] = []
    for user_id, category_id, budget_month, budget_year, _count in store.duplicate_scopes():
        scope = scope_for(category_id)
        rows = store.find_budgets(user_id, scope, budget_month, budget_year)
        anomaly = DataIntegrityAnomaly(
            user_id=user_id,
            category_id=category_id,
            budget_month=budget_month,
            budget_year=budget_year,
            budget_ids=[b.id for b in rows],
        )
        log_anomaly(anomaly)
        anomalies.append(anomaly)
    return anomalies
