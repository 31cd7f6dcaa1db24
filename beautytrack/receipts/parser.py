"""Heuristic parsing of OCR text lines into a structured receipt."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from .models import ParsedReceipt, ParsedReceiptItem

# Something like 12.34 or $12.34
_PRICE_RE = re.compile(r"\$?([0-9]+(?:\.[0-9]{1,2})?)")

_TOTAL_KEYWORDS: tuple[str, ...] = ("total", "subtotal", "amount")

# Lines at the top treated as the supplier header, and at the bottom as
# totals/footer, when looking for item lines.
_HEADER_LINES = 1
_FOOTER_LINES = 3

DEFAULT_ITEM_NAME = "Item"


def parse_lines(lines: Sequence[str]) -> ParsedReceipt:
    """Turn recognized text lines (top to bottom) into a receipt.

    Never raises; unreadable input yields no supplier, no total and no items.
    """
    cleaned = [line.strip() for line in lines if line and line.strip()]

    supplier = cleaned[0] if cleaned else None
    total = _find_total(cleaned)

    items: list[ParsedReceiptItem] = []
    candidates = cleaned[_HEADER_LINES:len(cleaned) - _FOOTER_LINES]
    for raw in candidates:
        item = parse_item_line(raw)
        if item is not None:
            items.append(item)

    return ParsedReceipt(supplier=supplier, total=total, items=items)


def _find_total(cleaned: list[str]) -> float | None:
    total: float | None = None
    for line in reversed(cleaned):
        lower = line.lower()
        if any(keyword in lower for keyword in _TOTAL_KEYWORDS):
            t = extract_first_price(line)
            if t is not None:
                total = t
                break
        if total is None:
            t = extract_first_price(line)
            if t is not None:
                total = t
                break
    return total


def extract_first_price(text: str) -> float | None:
    """Return the first price-looking number in text, or None."""
    match = _PRICE_RE.search(text)
    if match is None:
        return None
    return float(match.group(1))


def parse_item_line(line: str) -> ParsedReceiptItem | None:
    """Parse "Name [qty] price" lines.

    Examples:
        "CND Shellac Romantique 2 12.99"
        "Nitrile Powder-Free Gloves 8.99"
    """
    tokens = line.split()
    if not tokens:
        return None

    price_index: int | None = None
    for i in range(len(tokens) - 1, -1, -1):
        if _parse_decimal(tokens[i].replace("$", "")) is not None:
            price_index = i
            break
    if price_index is None:
        return None

    price = _parse_decimal(tokens[price_index].replace("$", "")) or 0.0

    qty = 1
    name_tokens = tokens[:price_index]
    if len(name_tokens) >= 2:
        possible_qty = _parse_int(tokens[price_index - 1])
        if possible_qty is not None:
            qty = possible_qty
            name_tokens = tokens[:price_index - 1]

    name = " ".join(name_tokens)
    return ParsedReceiptItem(
        name=name or DEFAULT_ITEM_NAME,
        quantity=qty,
        unit_price=price,
        total_price=qty * price,
    )


def _parse_decimal(token: str) -> float | None:
    if "_" in token:
        return None
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_int(token: str) -> int | None:
    if not re.fullmatch(r"[+-]?[0-9]+", token):
        return None
    return int(token)
