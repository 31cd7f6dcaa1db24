"""Entity records for products, expenses, receipts and receipt items."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

DEFAULT_USAGE_RATE = 0.5
NO_USAGE_REORDER_DAYS = 999

STOCK_PURCHASE = "Stock Purchase"
STOCK_SPENT = "Stock Spent"
STOCK_ADJUSTMENT = "Stock Adjustment"
SUPPLIES = "Supplies"


def utcnow() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_iso8601(value: datetime) -> str:
    """Format a timestamp as ISO-8601 UTC to the second, e.g. 2025-01-10T09:30:00Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def from_iso8601(text: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


class StockStatus(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UrgencyLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def normalize_category(raw: str) -> str:
    """Map legacy expense categories onto the labels used for totals.

    "Stock Adjustment" and "Stock Spent" both become "Stock Spent",
    "Stock Purchase" keeps its canonical spelling, anything else passes
    through unchanged.
    """
    folded = raw.casefold()
    if folded in (STOCK_ADJUSTMENT.casefold(), STOCK_SPENT.casefold()):
        return STOCK_SPENT
    if folded == STOCK_PURCHASE.casefold():
        return STOCK_PURCHASE
    return raw


@dataclass
class Product:
    """A stocked salon product."""

    name: str
    category: str
    supplier: str
    current_stock: int
    min_stock: int
    max_stock: int
    cost_per_unit: float
    location: str
    sku: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    usage_rate: float = DEFAULT_USAGE_RATE
    last_updated: datetime = field(default_factory=utcnow)
    reorder_days: int = 6

    @property
    def stock_status(self) -> StockStatus:
        if self.current_stock <= self.min_stock:
            return StockStatus.LOW
        if self.current_stock <= self.min_stock * 2:
            return StockStatus.MEDIUM
        return StockStatus.HIGH

    @property
    def urgency_level(self) -> UrgencyLevel:
        if self.reorder_days <= 1:
            return UrgencyLevel.CRITICAL
        if self.reorder_days <= 4:
            return UrgencyLevel.HIGH
        if self.reorder_days <= 7:
            return UrgencyLevel.MEDIUM
        return UrgencyLevel.LOW

    def update_usage_rate(self) -> None:
        """Reset the usage rate and recompute days of supply.

        Usage is not forecast; the rate is always the flat default and
        reorder_days is the weekly-cadence estimate derived from it.
        """
        self.usage_rate = DEFAULT_USAGE_RATE
        if self.usage_rate > 0:
            self.reorder_days = int(self.current_stock / self.usage_rate * 7)
        else:
            self.reorder_days = NO_USAGE_REORDER_DAYS


@dataclass(frozen=True)
class Expense:
    """An immutable ledger entry.

    product_name refers to a product by name only; renaming or deleting
    the product leaves historical entries untouched.
    """

    amount: float
    category: str = SUPPLIES
    product_name: str | None = None
    quantity: int = 0
    location: str = ""
    notes: str | None = None
    date: datetime = field(default_factory=utcnow)
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def normalized_category(self) -> str:
        return normalize_category(self.category)


@dataclass(frozen=True)
class Receipt:
    supplier: str
    date: datetime
    total: float
    items: int  # item count, not a collection
    location: str
    image_data: bytes | None = None
    ocr_text: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(frozen=True)
class ReceiptItem:
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    confidence: float
    status: str = "new"  # matched, partial or new
    id: uuid.UUID = field(default_factory=uuid.uuid4)
