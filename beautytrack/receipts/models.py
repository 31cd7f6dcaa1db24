"""Data models for parsed receipt text."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ParsedReceiptItem:
    """A single item line recovered from receipt text."""

    name: str
    quantity: int
    unit_price: float
    total_price: float
    category: str | None = None


@dataclass(frozen=True)
class ParsedReceipt:
    """Best-effort structure recovered from receipt text.

    Any field may be empty; that is a valid, uninformative result.
    """

    supplier: str | None = None
    total: float | None = None
    items: list[ParsedReceiptItem] = field(default_factory=list)
