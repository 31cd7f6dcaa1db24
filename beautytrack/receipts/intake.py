"""Receipt intake from scanned images, OCR text lines or manual entry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..models import Receipt, ReceiptItem
from .models import ParsedReceipt
from .parser import parse_lines

if TYPE_CHECKING:
    from ..ledger import Ledger
    from ..ocr import TextRecognizer

logger = logging.getLogger(__name__)

SCANNED_CONFIDENCE = 0.9
MANUAL_CONFIDENCE = 1.0

SCANNED_SUPPLIER = "Scanned"
MANUAL_SUPPLIER = "Manual"


@dataclass
class ManualItem:
    """One row of a hand-typed receipt, fields as entered."""

    name: str
    quantity: str = "1"
    price: str = ""


class ReceiptIntake:
    """Feeds receipts into the ledger.

    Scanned receipts go through the heuristic parser and get a fixed
    confidence per item; manually entered receipts are taken as exact.
    """

    def __init__(
        self, ledger: Ledger, recognizer: TextRecognizer | None = None
    ) -> None:
        self._ledger = ledger
        self._recognizer = recognizer

    async def scan_image(
        self,
        image_path: str | Path,
        location: str | None = None,
        *,
        keep_image: bool = False,
    ) -> Receipt:
        """Recognize text in a receipt photo and record the result.

        Raises:
            RuntimeError: If no text recognizer was configured.
        """
        if self._recognizer is None:
            raise RuntimeError("No text recognizer configured for image scans")

        lines = await self._recognizer.recognize_lines(str(image_path))
        image_data = Path(image_path).read_bytes() if keep_image else None
        return await self.ingest_lines(lines, location, image_data=image_data)

    async def ingest_lines(
        self,
        lines: Sequence[str],
        location: str | None = None,
        *,
        image_data: bytes | None = None,
    ) -> Receipt:
        """Parse recognized lines off the caller's thread and record them."""
        parsed = await asyncio.to_thread(parse_lines, list(lines))
        return self.record_parsed(
            parsed,
            location,
            ocr_text="\n".join(lines),
            image_data=image_data,
        )

    def record_parsed(
        self,
        parsed: ParsedReceipt,
        location: str | None = None,
        *,
        ocr_text: str | None = None,
        image_data: bytes | None = None,
    ) -> Receipt:
        supplier = parsed.supplier or SCANNED_SUPPLIER
        total = parsed.total
        if total is None:
            total = sum(item.total_price for item in parsed.items)

        items = [
            ReceiptItem(
                product_name=p.name,
                quantity=p.quantity,
                unit_price=p.unit_price,
                total_price=p.total_price,
                confidence=SCANNED_CONFIDENCE,
                status="matched",
            )
            for p in parsed.items
        ]
        logger.info("Parsed receipt from %r with %d items", supplier, len(items))
        return self._ledger.add_parsed_receipt(
            supplier,
            total,
            location or self._ledger.current_location,
            items,
            ocr_text=ocr_text,
            image_data=image_data,
        )

    def record_manual(
        self,
        supplier: str,
        total: str,
        items: Sequence[ManualItem],
        location: str = "",
    ) -> Receipt:
        """Record a hand-typed receipt.

        An unreadable total falls back to the sum of price times quantity;
        unreadable quantities count as 1 and unreadable prices as 0.
        """
        receipt_items: list[ReceiptItem] = []
        for it in items:
            qty = _to_int(it.quantity, 1)
            price = _to_float(it.price, 0.0)
            receipt_items.append(
                ReceiptItem(
                    product_name=it.name,
                    quantity=qty,
                    unit_price=price,
                    total_price=qty * price,
                    confidence=MANUAL_CONFIDENCE,
                    status="new",
                )
            )

        explicit = _to_float(total, None)
        if explicit is None:
            explicit = sum(
                _to_float(it.price, 0.0) * _to_float(it.quantity, 1.0) for it in items
            )

        return self._ledger.add_parsed_receipt(
            supplier or MANUAL_SUPPLIER,
            explicit,
            location or self._ledger.current_location,
            receipt_items,
        )


def _to_int(text: str, default: int) -> int:
    try:
        return int(text.strip())
    except ValueError:
        return default


def _to_float(text: str, default: float | None) -> float | None:
    try:
        return float(text.strip())
    except ValueError:
        return default
