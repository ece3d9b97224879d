"""Resolve which budget applies to a user, scope and month.

A budget either covers all spending of a month (``Overall``) or exactly one
category (``ForCategory``). The two scopes never stand in for each other: a
category without its own budget has no budget, even when an overall budget
exists for the same month.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union

from errors import BudgetNotFound, DataIntegrityAnomaly
from models import Budget
from periods import format_month

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Overall:
    category_id = None

    def __str__(self) -> str:
        return "overall"


@dataclass(frozen=True)
class ForCategory:
    category_id: int

    def __str__(self) -> str:
        return f"category={self.category_id}"


BudgetScope = Union[Overall, ForCategory]


def scope_for(category_id: Optional[int]) -> BudgetScope:
    if category_id is None:
        return Overall()
    return ForCategory(category_id)


class BudgetStore(Protocol):
    def find_budgets(
        self, user_id: int, scope: BudgetScope, month: str, year: int
    ) -> list[Budget]:  # pragma: no cover - interface
        """Rows for the scope, newest (``created_at``, then ``id``) first."""
        ...


def log_anomaly(anomaly: DataIntegrityAnomaly) -> None:
    logger.warning(str(anomaly))


class BudgetResolver:
    def __init__(
        self,
        store: BudgetStore,
        on_anomaly: Optional[Callable[[DataIntegrityAnomaly], None]] = None,
    ) -> None:
        self.store = store
        self.on_anomaly = on_anomaly or log_anomaly

    def resolve(
        self,
        user_id: int,
        scope: BudgetScope,
        month: Union[int, str],
        year: int,
    ) -> Budget:
        budget_month = format_month(month)
        matches = self.store.find_budgets(user_id, scope, budget_month, year)
        if not matches:
            raise BudgetNotFound(
                f"No {scope} budget for {year}-{budget_month}"
            )
        if len(matches) > 1:
            self.on_anomaly(
                DataIntegrityAnomaly(
                    user_id=user_id,
                    category_id=scope.category_id,
                    budget_month=budget_month,
                    budget_year=year,
                    budget_ids=[b.id for b in matches],
                )
            )
        return matches[0]
