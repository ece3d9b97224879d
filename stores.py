from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, joinedload

from budgets import BudgetScope, ForCategory
from errors import StorageUnavailable
from models import Budget, Transaction
from periods import Period

logger = logging.getLogger(__name__)


@contextmanager
def storage_call(session: Session, operation: str) -> Iterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        logger.error(f"storage_unavailable: operation={operation} error={exc}")
        session.rollback()
        raise StorageUnavailable(operation) from exc


class SqlTransactionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, transaction_id: int) -> Optional[Transaction]:
        """Load by id without any ownership filter; callers check ``user_id``."""
        with storage_call(self.session, "get_transaction"):
            return self.session.scalar(
                select(Transaction)
                .options(joinedload(Transaction.category))
                .where(Transaction.id == transaction_id)
            )

    def find_transactions(
        self,
        user_id: int,
        period: Optional[Period] = None,
        *,
        category_id: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if period is not None:
            stmt = stmt.where(
                Transaction.transaction_date >= period.start,
                Transaction.transaction_date < period.end,
            )
        if category_id is not None:
            stmt = stmt.where(Transaction.category_id == category_id)
        if newest_first:
            stmt = stmt.order_by(
                Transaction.transaction_date.desc(), Transaction.id.desc()
            )
        else:
            stmt = stmt.order_by(
                Transaction.transaction_date.asc(), Transaction.id.asc()
            )
        with storage_call(self.session, "find_transactions"):
            return list(self.session.scalars(stmt).all())

    def count_for_category(self, user_id: int, category_id: int) -> int:
        with storage_call(self.session, "count_transactions"):
            return int(
                self.session.execute(
                    select(func.count(Transaction.id)).where(
                        Transaction.user_id == user_id,
                        Transaction.category_id == category_id,
                    )
                ).scalar_one()
                or 0
            )

    def create(self, txn: Transaction) -> Transaction:
        with storage_call(self.session, "create_transaction"):
            self.session.add(txn)
            self.session.commit()
            self.session.refresh(txn)
        return txn

    def update(self, txn: Transaction) -> Transaction:
        with storage_call(self.session, "update_transaction"):
            self.session.commit()
            self.session.refresh(txn)
        return txn

    def delete(self, txn: Transaction) -> None:
        with storage_call(self.session, "delete_transaction"):
            self.session.delete(txn)
            self.session.commit()


def _scope_clause(scope: BudgetScope):
    if isinstance(scope, ForCategory):
        return Budget.category_id == scope.category_id
    return Budget.category_id.is_(None)


class SqlBudgetStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, budget_id: int) -> Optional[Budget]:
        with storage_call(self.session, "get_budget"):
            return self.session.get(Budget, budget_id)

    def find_budgets(
        self, user_id: int, scope: BudgetScope, month: str, year: int
    ) -> list[Budget]:
        """Every row for the scope, newest first. More than one is an anomaly."""
        stmt = (
            select(Budget)
            .where(
                Budget.user_id == user_id,
                Budget.budget_month == month,
                Budget.budget_year == year,
                _scope_clause(scope),
            )
            .order_by(Budget.created_at.desc(), Budget.id.desc())
        )
        with storage_call(self.session, "find_budget"):
            return list(self.session.scalars(stmt).all())

    def find_budget(
        self, user_id: int, scope: BudgetScope, month: str, year: int
    ) -> Optional[Budget]:
        matches = self.find_budgets(user_id, scope, month, year)
        return matches[0] if matches else None

    def list_for_month(self, user_id: int, month: str, year: int) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(
                Budget.user_id == user_id,
                Budget.budget_month == month,
                Budget.budget_year == year,
            )
            .order_by(
                Budget.category_id.is_(None).desc(),
                Budget.category_id.asc(),
                Budget.created_at.desc(),
                Budget.id.desc(),
            )
        )
        with storage_call(self.session, "list_budgets"):
            return list(self.session.scalars(stmt).all())

    def count_for_category(self, user_id: int, category_id: int) -> int:
        with storage_call(self.session, "count_budgets"):
            return int(
                self.session.execute(
                    select(func.count(Budget.id)).where(
                        Budget.user_id == user_id,
                        Budget.category_id == category_id,
                    )
                ).scalar_one()
                or 0
            )

    def duplicate_scopes(self) -> list[tuple[int, Optional[int], str, int, int]]:
        """(user_id, category_id, month, year, row_count) for scopes with >1 row."""
        stmt = (
            select(
                Budget.user_id,
                Budget.category_id,
                Budget.budget_month,
                Budget.budget_year,
                func.count(Budget.id).label("row_count"),
            )
            .group_by(
                Budget.user_id,
                Budget.category_id,
                Budget.budget_month,
                Budget.budget_year,
            )
            .having(func.count(Budget.id) > 1)
        )
        with storage_call(self.session, "audit_budgets"):
            return [tuple(row) for row in self.session.execute(stmt).all()]

    def save(self, budget: Budget) -> Budget:
        with storage_call(self.session, "save_budget"):
            self.session.add(budget)
            self.session.commit()
            self.session.refresh(budget)
        return budget

    def delete(self, budget: Budget) -> None:
        with storage_call(self.session, "delete_budget"):
            self.session.delete(budget)
            self.session.commit()
