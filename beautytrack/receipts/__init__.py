"""Receipt parsing and intake."""

from .intake import ManualItem, ReceiptIntake
from .models import ParsedReceipt, ParsedReceiptItem
from .parser import extract_first_price, parse_item_line, parse_lines

__all__ = [
    "ReceiptIntake",
    "ManualItem",
    "ParsedReceipt",
    "ParsedReceiptItem",
    "parse_lines",
    "parse_item_line",
    "extract_first_price",
]
