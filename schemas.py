from decimal import Decimal
from typing import Optional, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from periods import format_month


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category_id: int
    amount: Decimal = Field(..., max_digits=14, decimal_places=2)
    description: str = Field(default="", max_length=500)
    transaction_date: AwareDatetime


class BudgetIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category_id: Optional[int] = None
    budget_month: str
    budget_year: int = Field(..., ge=1970, le=3000)
    limit_amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)

    @field_validator("budget_month", mode="before")
    @classmethod
    def _two_digit_month(cls, value: Union[int, str]) -> str:
        return format_month(value)


class BudgetLimitIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    limit_amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
