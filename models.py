from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base

if TYPE_CHECKING:  # pragma: no cover
    from budgets import BudgetScope


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="category"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_user_name"),
        # names compare case-insensitively per user
        Index(
            "uq_category_user_lower_name",
            "user_id",
            text("lower(name)"),
            unique=True,
        ),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    # signed; positive values are expenses
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # naive UTC
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    category: Mapped["Category"] = relationship(
        "Category", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "transaction_date"),
        Index(
            "ix_transactions_user_category_date",
            "user_id",
            "category_id",
            "transaction_date",
        ),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL is the overall budget for the period
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    budget_month: Mapped[str] = mapped_column(String(2), nullable=False)
    budget_year: Mapped[int] = mapped_column(Integer, nullable=False)
    limit_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    category: Mapped[Optional["Category"]] = relationship("Category")

    __table_args__ = (
        CheckConstraint(
            "limit_amount_cents >= 0", name="ck_budget_limit_amount_positive"
        ),
        UniqueConstraint(
            "user_id",
            "category_id",
            "budget_month",
            "budget_year",
            name="uq_budget_user_category_month",
        ),
        # unique constraints treat NULLs as distinct, so the overall scope
        # needs its own partial index
        Index(
            "uq_budget_user_month_overall",
            "user_id",
            "budget_month",
            "budget_year",
            unique=True,
            sqlite_where=text("category_id IS NULL"),
            postgresql_where=text("category_id IS NULL"),
        ),
        Index("ix_budget_user_month", "user_id", "budget_year", "budget_month"),
    )

    @property
    def scope(self) -> "BudgetScope":
        from budgets import scope_for

        return scope_for(self.category_id)
