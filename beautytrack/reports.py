"""Expense summaries and reorder lists derived from ledger state."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .models import STOCK_SPENT, Expense, Product, StockStatus, UrgencyLevel

OTHER_CATEGORY = "Other"

_URGENCY_RANK: dict[UrgencyLevel, int] = {
    UrgencyLevel.CRITICAL: 0,
    UrgencyLevel.HIGH: 1,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.LOW: 3,
}


class TimeRange(str, Enum):
    TODAY = "today"
    THIS_WEEK = "week"
    THIS_MONTH = "month"
    LAST_MONTH = "last-month"
    ALL_TIME = "all"


@dataclass
class ExpenseTotals:
    net: float
    purchased: float
    usage: float


@dataclass
class CategoryTotal:
    name: str
    total: float


def _in_range(date: datetime, time_range: TimeRange, now: datetime) -> bool:
    date = date.astimezone(now.tzinfo)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_day.replace(day=1)

    match time_range:
        case TimeRange.TODAY:
            return date.date() == now.date()
        case TimeRange.THIS_WEEK:
            return date >= start_of_day - timedelta(days=now.weekday())
        case TimeRange.THIS_MONTH:
            return date >= start_of_month
        case TimeRange.LAST_MONTH:
            start_of_last = (start_of_month - timedelta(days=1)).replace(day=1)
            return start_of_last <= date < start_of_month
        case _:
            return True


def filter_expenses(
    expenses: Iterable[Expense],
    time_range: TimeRange,
    location: str,
    now: datetime,
) -> list[Expense]:
    """Expenses for a location (or with no location) inside a time range.

    now must be timezone-aware; day and month boundaries follow its zone.
    """
    return [
        e
        for e in expenses
        if (not e.location or e.location == location)
        and _in_range(e.date, time_range, now)
    ]


def expense_totals(expenses: Iterable[Expense]) -> ExpenseTotals:
    """Net spend is purchases minus usage, where usage is "Stock Spent"."""
    purchased = 0.0
    usage = 0.0
    for e in expenses:
        if e.normalized_category == STOCK_SPENT:
            usage += e.amount
        else:
            purchased += e.amount
    return ExpenseTotals(net=purchased - usage, purchased=purchased, usage=usage)


def category_breakdown(
    expenses: Iterable[Expense], products: Sequence[Product]
) -> list[CategoryTotal]:
    """Totals per product category, largest magnitude first.

    Expenses are attributed through their product name; anything that no
    longer matches a product lands in "Other". Usage counts negative.
    """
    by_name = {p.name.casefold(): p.category for p in products}
    totals: dict[str, float] = {}
    for e in expenses:
        category = OTHER_CATEGORY
        if e.product_name is not None:
            category = by_name.get(e.product_name.casefold(), OTHER_CATEGORY)
        amount = -e.amount if e.normalized_category == STOCK_SPENT else e.amount
        totals[category] = totals.get(category, 0.0) + amount

    breakdown = [CategoryTotal(name, total) for name, total in totals.items() if total != 0]
    return sorted(breakdown, key=lambda c: abs(c.total), reverse=True)


def usage_expenses(expenses: Iterable[Expense]) -> list[Expense]:
    return sorted(
        (e for e in expenses if e.normalized_category == STOCK_SPENT),
        key=lambda e: e.date,
        reverse=True,
    )


def recent_expenses(expenses: Iterable[Expense], limit: int = 6) -> list[Expense]:
    return sorted(expenses, key=lambda e: e.date, reverse=True)[:limit]


def reorder_candidates(products: Iterable[Product]) -> list[Product]:
    """Products that are low or running out soon, most urgent first."""
    candidates = [
        p
        for p in products
        if p.stock_status is StockStatus.LOW
        or p.urgency_level in (UrgencyLevel.CRITICAL, UrgencyLevel.HIGH)
    ]
    return sorted(candidates, key=lambda p: (_URGENCY_RANK[p.urgency_level], p.current_stock))


def low_stock_at(products: Iterable[Product], location: str) -> list[Product]:
    return sorted(
        (p for p in products if p.stock_status is StockStatus.LOW and p.location == location),
        key=lambda p: p.current_stock,
    )


def critical_at(products: Iterable[Product], location: str) -> list[Product]:
    return sorted(
        (
            p
            for p in products
            if p.urgency_level is UrgencyLevel.CRITICAL and p.location == location
        ),
        key=lambda p: p.current_stock,
    )
