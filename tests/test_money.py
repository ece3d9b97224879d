from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from money import cents_to_decimal, format_amount, to_cents
from periods import current_month, format_month, month_period


def test_to_cents_rounds_half_up() -> None:
    assert to_cents(Decimal("10.005")) == 1001
    assert to_cents(Decimal("-0.015")) == -2
    assert to_cents("19.99") == 1999
    assert to_cents(3) == 300
    with pytest.raises(ValueError):
        to_cents("abc")
    with pytest.raises(ValueError):
        to_cents(Decimal("NaN"))


def test_cents_render_with_two_decimals() -> None:
    assert cents_to_decimal(5) == Decimal("0.05")
    assert format_amount(-1250) == "-12.50"
    assert format_amount(0) == "0.00"


def test_month_helpers() -> None:
    assert format_month(1) == "01"
    assert format_month("12") == "12"
    with pytest.raises(ValueError):
        format_month("december")

    berlin = ZoneInfo("Europe/Berlin")
    december = month_period(12, 2024, berlin)
    assert december.start == datetime(2024, 11, 30, 23, 0)
    assert december.end == datetime(2024, 12, 31, 23, 0)

    assert current_month(datetime(2024, 12, 31, 23, 30), berlin) == ("01", 2025)
