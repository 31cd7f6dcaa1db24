"""Tests for entity records and derived product fields."""

from datetime import datetime, timezone

import pytest

from beautytrack.models import (
    Expense,
    Product,
    StockStatus,
    UrgencyLevel,
    from_iso8601,
    normalize_category,
    to_iso8601,
)


def make_product(**overrides) -> Product:
    fields = dict(
        name="Color Gloss",
        category="Color Supplies",
        supplier="Salon Centric",
        current_stock=10,
        min_stock=10,
        max_stock=40,
        cost_per_unit=4.25,
        location="downtown",
    )
    fields.update(overrides)
    return Product(**fields)


class TestStockStatus:
    @pytest.mark.parametrize(
        "stock, expected",
        [
            (0, StockStatus.LOW),
            (10, StockStatus.LOW),
            (11, StockStatus.MEDIUM),
            (20, StockStatus.MEDIUM),
            (21, StockStatus.HIGH),
        ],
    )
    def test_thresholds(self, stock, expected):
        assert make_product(current_stock=stock, min_stock=10).stock_status is expected

    def test_zero_minimum(self):
        assert make_product(current_stock=0, min_stock=0).stock_status is StockStatus.LOW
        assert make_product(current_stock=1, min_stock=0).stock_status is StockStatus.HIGH


class TestUrgencyLevel:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, UrgencyLevel.CRITICAL),
            (1, UrgencyLevel.CRITICAL),
            (2, UrgencyLevel.HIGH),
            (4, UrgencyLevel.HIGH),
            (5, UrgencyLevel.MEDIUM),
            (7, UrgencyLevel.MEDIUM),
            (8, UrgencyLevel.LOW),
            (999, UrgencyLevel.LOW),
        ],
    )
    def test_thresholds(self, days, expected):
        assert make_product(reorder_days=days).urgency_level is expected


class TestReorderDays:
    def test_new_product_defaults(self):
        p = make_product()
        assert p.usage_rate == 0.5
        assert p.reorder_days == 6

    def test_update_usage_rate(self):
        p = make_product(current_stock=3)
        p.update_usage_rate()
        # 3 / 0.5 * 7
        assert p.reorder_days == 42

    def test_floor_of_fraction(self):
        p = make_product(current_stock=0)
        p.update_usage_rate()
        assert p.reorder_days == 0


class TestNormalizeCategory:
    def test_stock_adjustment_lowercase(self):
        assert normalize_category("stock adjustment") == "Stock Spent"

    def test_stock_spent_any_case(self):
        assert normalize_category("STOCK SPENT") == "Stock Spent"

    def test_stock_purchase(self):
        assert normalize_category("stock purchase") == "Stock Purchase"

    def test_passthrough(self):
        assert normalize_category("Something Else") == "Something Else"
        assert normalize_category("Supplies") == "Supplies"

    def test_expense_property(self):
        e = Expense(amount=5.0, category="Stock Adjustment")
        assert e.normalized_category == "Stock Spent"
        assert e.category == "Stock Adjustment"


class TestExpense:
    def test_is_immutable(self):
        e = Expense(amount=5.0)
        with pytest.raises(AttributeError):
            e.amount = 10.0  # type: ignore[misc]

    def test_defaults(self):
        e = Expense(amount=1.0)
        assert e.category == "Supplies"
        assert e.product_name is None
        assert e.date.microsecond == 0


class TestTimestamps:
    def test_format_utc(self):
        dt = datetime(2025, 1, 10, 9, 30, 15, 123456, tzinfo=timezone.utc)
        assert to_iso8601(dt) == "2025-01-10T09:30:15Z"

    def test_parse_z_suffix(self):
        assert from_iso8601("2025-01-10T09:30:15Z") == datetime(
            2025, 1, 10, 9, 30, 15, tzinfo=timezone.utc
        )

    def test_parse_offset(self):
        assert from_iso8601("2025-01-10T10:30:15+01:00") == datetime(
            2025, 1, 10, 9, 30, 15, tzinfo=timezone.utc
        )

    def test_parse_naive_is_utc(self):
        assert from_iso8601("2025-01-10T09:30:15").tzinfo == timezone.utc
