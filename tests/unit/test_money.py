"""Unit tests for money and period helpers."""

from datetime import date
from decimal import Decimal

import pytest

from condo_ledger.errors import InvalidAmountError
from condo_ledger.services.money import (
    day_before,
    month_bounds,
    period_label,
    previous_month,
    quantize,
    to_money,
)


class TestToMoney:
    """Test amount validation."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("120", Decimal("120.00")),
            ("0.01", Decimal("0.01")),
            (Decimal("99.90"), Decimal("99.90")),
            (15, Decimal("15.00")),
            (12.5, Decimal("12.50")),
        ],
    )
    def test_accepts_positive_cent_amounts(self, value, expected):
        assert to_money(value) == expected

    @pytest.mark.parametrize("value", ["0", "-5", Decimal("-0.01"), 0])
    def test_rejects_non_positive(self, value):
        with pytest.raises(InvalidAmountError) as exc:
            to_money(value)
        assert exc.value.code == "invalid_amount"
        assert exc.value.context["field"] == "amount"

    @pytest.mark.parametrize("value", ["NaN", "Infinity", float("inf")])
    def test_rejects_non_finite(self, value):
        with pytest.raises(InvalidAmountError):
            to_money(value)

    def test_rejects_non_numeric(self):
        with pytest.raises(InvalidAmountError) as exc:
            to_money("abc", field="common_expense_portion")
        assert exc.value.context["field"] == "common_expense_portion"

    def test_rejects_sub_cent_precision(self):
        with pytest.raises(InvalidAmountError):
            to_money("10.005")


class TestPeriodHelpers:
    """Test month arithmetic."""

    def test_month_bounds(self):
        assert month_bounds(2, 2024) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(12, 2025) == (date(2025, 12, 1), date(2025, 12, 31))

    def test_month_bounds_rejects_bad_month(self):
        with pytest.raises(ValueError):
            month_bounds(13, 2025)

    def test_previous_month_wraps_year(self):
        assert previous_month(1, 2025) == (12, 2024)
        assert previous_month(7, 2025) == (6, 2025)

    def test_day_before(self):
        assert day_before(date(2025, 3, 1)) == date(2025, 2, 28)

    def test_period_label(self):
        assert period_label(1, 2025) == "January 2025"

    def test_quantize_rounds_half_up(self):
        assert quantize(Decimal("0.125")) == Decimal("0.13")
        assert quantize(Decimal("33.333333")) == Decimal("33.33")
