"""Spending totals over calendar windows.

Weekly reports use Monday-anchored weeks in the configured timezone. Each
bucket is half-open, so a transaction at Monday 00:00 counts toward the week
that begins there. Totals are summed in integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

from budgets import BudgetScope, ForCategory, Overall
from models import Transaction
from money import cents_to_decimal
from periods import Period, as_utc, to_utc_naive, week_buckets


class TransactionStore(Protocol):
    def find_transactions(
        self,
        user_id: int,
        period: Optional[Period] = None,
        *,
        category_id: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[Transaction]:  # pragma: no cover - interface
        ...


@dataclass(frozen=True)
class WeeklySpending:
    week_start: datetime
    week_end: datetime
    total_cents: int

    @property
    def total(self) -> Decimal:
        return cents_to_decimal(self.total_cents)

    def as_dict(self) -> dict[str, object]:
        return {
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "total": str(self.total),
            "total_cents": self.total_cents,
        }


class SpendingAggregator:
    def __init__(self, store: TransactionStore, tz: Optional[ZoneInfo] = None) -> None:
        self.store = store
        self.tz = tz

    def weekly_spending(
        self, user_id: int, as_of: datetime, window_weeks: int = 6
    ) -> list[WeeklySpending]:
        """Totals for ``window_weeks`` weeks ending with the week holding ``as_of``.

        Always exactly ``window_weeks`` entries, oldest first; empty weeks
        report zero.
        """
        buckets = week_buckets(as_of, window_weeks, self.tz)
        window = Period(buckets[0].start, buckets[-1].end)
        transactions = self.store.find_transactions(user_id, window)

        totals = [0] * len(buckets)
        for txn in transactions:
            moment = to_utc_naive(txn.transaction_date)
            # DST weeks differ in length; match on boundaries
            for idx, bucket in enumerate(buckets):
                if bucket.contains(moment):
                    totals[idx] += txn.amount_cents
                    break

        return [
            WeeklySpending(
                week_start=as_utc(bucket.start),
                week_end=as_utc(bucket.end),
                total_cents=total,
            )
            for bucket, total in zip(buckets, totals)
        ]

    def total_for_period(
        self, user_id: int, period: Period, scope: BudgetScope = Overall()
    ) -> int:
        category_id = scope.category_id if isinstance(scope, ForCategory) else None
        transactions = self.store.find_transactions(
            user_id, period, category_id=category_id
        )
        return sum(txn.amount_cents for txn in transactions)
