from __future__ import annotations

from typing import Optional, Sequence


class NotFound(ValueError):
    """A row does not exist or is not visible to the requesting user."""


class BudgetNotFound(NotFound):
    pass


class TransactionNotFound(NotFound):
    pass


class CategoryNotFound(NotFound):
    pass


class StorageUnavailable(RuntimeError):
    """The underlying store failed or timed out."""

    def __init__(self, operation: str, message: str = "") -> None:
        self.operation = operation
        super().__init__(message or f"Storage unavailable during {operation}")


class DataIntegrityAnomaly(Exception):
    """More than one budget row matches a scope that should be unique.

    Reported, never raised by the resolver: the newest row still wins.
    """

    def __init__(
        self,
        user_id: int,
        category_id: Optional[int],
        budget_month: str,
        budget_year: int,
        budget_ids: Sequence[int],
    ) -> None:
        self.user_id = user_id
        self.category_id = category_id
        self.budget_month = budget_month
        self.budget_year = budget_year
        self.budget_ids = list(budget_ids)
        scope = "overall" if category_id is None else f"category={category_id}"
        super().__init__(
            f"budget_integrity_anomaly: user_id={user_id} scope={scope} "
            f"period={budget_year}-{budget_month} budget_ids={self.budget_ids}"
        )
