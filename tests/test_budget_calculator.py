"""Tests for budget arithmetic."""

from decimal import Decimal

from cineexpense.calculators import is_over_budget, is_threshold_breached, utilization


class TestUtilization:
    def test_ratio(self):
        assert utilization(Decimal("600"), Decimal("1000")) == Decimal("0.6")

    def test_zero_allocation_counts_as_fully_used(self):
        assert utilization(Decimal("0"), Decimal("0")) == Decimal("1")
        assert utilization(Decimal("50"), Decimal("0")) == Decimal("1")

    def test_can_exceed_one(self):
        assert utilization(Decimal("1500"), Decimal("1000")) == Decimal("1.5")


class TestOverBudget:
    def test_strictly_greater(self):
        assert is_over_budget(Decimal("1100.00"), Decimal("1000.00")) is True
        assert is_over_budget(Decimal("1000.01"), Decimal("1000.00")) is True

    def test_landing_on_allocation_is_allowed(self):
        assert is_over_budget(Decimal("1000.00"), Decimal("1000.00")) is False
        assert is_over_budget(Decimal("999.99"), Decimal("1000.00")) is False

    def test_zero_allocation(self):
        """Any positive candidate exceeds a zero allocation."""
        assert is_over_budget(Decimal("0.01"), Decimal("0")) is True


class TestThreshold:
    def test_inclusive_default(self):
        assert is_threshold_breached(Decimal("0.80")) is True
        assert is_threshold_breached(Decimal("0.79")) is False

    def test_custom_threshold(self):
        assert is_threshold_breached(Decimal("0.90"), Decimal("0.95")) is False
        assert is_threshold_breached(Decimal("0.95"), Decimal("0.95")) is True
