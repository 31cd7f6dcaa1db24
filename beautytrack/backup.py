"""Backup export and restore for the whole ledger dataset.

The document layout mirrors the mobile app's backup files: camelCase keys,
ISO-8601 UTC timestamps, base64 image bytes, and optional fields omitted
when empty. Encoding sorts keys so identical datasets produce identical
files apart from metadata.exportedAt.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import BackupError
from .models import Expense, Product, Receipt, from_iso8601, to_iso8601, utcnow

if TYPE_CHECKING:
    from .ledger import Ledger

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "BeautyTrack-Backup-"


@dataclass
class BackupBundle:
    exported_at: datetime
    locations: list[str]
    current_location: str
    products: list[Product]
    receipts: list[Receipt]
    expenses: list[Expense]


# -- export --


def export_backup(ledger: Ledger, exported_at: datetime | None = None) -> dict:
    """Snapshot the ledger into a JSON-serializable document."""
    return {
        "metadata": {"exportedAt": to_iso8601(exported_at or utcnow())},
        "locations": list(ledger.locations),
        "currentLocation": ledger.current_location,
        "products": [_product_to_dict(p) for p in ledger.products],
        "receipts": [_receipt_to_dict(r) for r in ledger.receipts],
        "expenses": [_expense_to_dict(e) for e in ledger.expenses],
    }


def encode_backup(document: dict) -> str:
    return json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False)


def backup_filename(when: datetime) -> str:
    return f"{FILENAME_PREFIX}{to_iso8601(when)}.json"


def write_backup_file(ledger: Ledger, directory: str | Path | None = None) -> Path:
    """Write a backup file for hand-off to a sharing collaborator.

    Args:
        ledger: The ledger to export.
        directory: Target directory. Defaults to the system temp directory.

    Returns:
        Path of the written file.

    Raises:
        BackupError: If the file cannot be written.
    """
    now = utcnow()
    target_dir = Path(directory).expanduser() if directory else Path(tempfile.gettempdir())
    path = target_dir / backup_filename(now)
    data = encode_backup(export_backup(ledger, exported_at=now)).encode("utf-8")

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.exception("Failed to write backup to %s", path)
        raise BackupError(f"Could not write backup file {path}: {e}") from e

    logger.info(
        "Backup written to %s (%d products, %d receipts, %d expenses)",
        path,
        len(ledger.products),
        len(ledger.receipts),
        len(ledger.expenses),
    )
    return path


def _product_to_dict(p: Product) -> dict:
    d: dict[str, Any] = {
        "id": str(p.id),
        "name": p.name,
        "category": p.category,
        "supplier": p.supplier,
        "currentStock": p.current_stock,
        "minStock": p.min_stock,
        "maxStock": p.max_stock,
        "usageRate": float(p.usage_rate),
        "lastUpdated": to_iso8601(p.last_updated),
        "costPerUnit": float(p.cost_per_unit),
        "reorderDays": p.reorder_days,
        "location": p.location,
    }
    if p.sku is not None:
        d["sku"] = p.sku
    return d


def _receipt_to_dict(r: Receipt) -> dict:
    d: dict[str, Any] = {
        "id": str(r.id),
        "supplier": r.supplier,
        "date": to_iso8601(r.date),
        "total": float(r.total),
        "items": r.items,
        "location": r.location,
    }
    if r.image_data is not None:
        d["imageData"] = base64.b64encode(r.image_data).decode("ascii")
    if r.ocr_text is not None:
        d["ocrText"] = r.ocr_text
    return d


def _expense_to_dict(e: Expense) -> dict:
    d: dict[str, Any] = {
        "id": str(e.id),
        "date": to_iso8601(e.date),
        "amount": float(e.amount),
        "category": e.category,
        "quantity": e.quantity,
        "location": e.location,
    }
    if e.product_name is not None:
        d["productName"] = e.product_name
    if e.notes is not None:
        d["notes"] = e.notes
    return d


# -- restore --


def decode_backup(data: bytes | str) -> BackupBundle:
    """Decode and validate a backup document without touching any state.

    Raises:
        BackupError: If the document is not valid JSON or does not match
            the backup schema.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BackupError(f"Backup is not valid JSON: {e}") from e

    try:
        doc = _expect(raw, dict, "document")
        metadata = _expect(_field(doc, "metadata"), dict, "metadata")
        locations = _expect(_field(doc, "locations"), list, "locations")
        products = [
            _product_from_dict(_expect(p, dict, "products[]"))
            for p in _expect(_field(doc, "products"), list, "products")
        ]
        _check_unique_names(products)
        return BackupBundle(
            exported_at=_date(metadata, "exportedAt"),
            locations=[_expect(loc, str, "locations[]") for loc in locations],
            current_location=_str(doc, "currentLocation"),
            products=products,
            receipts=[
                _receipt_from_dict(_expect(r, dict, "receipts[]"))
                for r in _expect(_field(doc, "receipts"), list, "receipts")
            ],
            expenses=[
                _expense_from_dict(_expect(e, dict, "expenses[]"))
                for e in _expect(_field(doc, "expenses"), list, "expenses")
            ],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise BackupError(f"Backup does not match the expected format: {e}") from e


def restore_backup(ledger: Ledger, data: bytes | str) -> BackupBundle:
    """Replace the ledger's dataset with the contents of a backup.

    The document is fully decoded before anything is deleted; a malformed
    backup leaves the ledger untouched.
    """
    bundle = decode_backup(data)
    ledger.replace_dataset(
        bundle.products,
        bundle.receipts,
        bundle.expenses,
        bundle.locations,
        bundle.current_location,
    )
    return bundle


def read_backup_file(ledger: Ledger, path: str | Path) -> BackupBundle:
    """Restore from a backup file on disk."""
    path = Path(path).expanduser()
    try:
        data = path.read_bytes()
    except OSError as e:
        raise BackupError(f"Could not read backup file {path}: {e}") from e
    return restore_backup(ledger, data)


def _product_from_dict(d: dict) -> Product:
    return Product(
        id=_uuid(d, "id"),
        name=_str(d, "name"),
        sku=_optional_str(d, "sku"),
        category=_str(d, "category"),
        supplier=_str(d, "supplier"),
        current_stock=_int(d, "currentStock"),
        min_stock=_int(d, "minStock"),
        max_stock=_int(d, "maxStock"),
        usage_rate=_number(d, "usageRate"),
        last_updated=_date(d, "lastUpdated"),
        cost_per_unit=_number(d, "costPerUnit"),
        reorder_days=_int(d, "reorderDays"),
        location=_str(d, "location"),
    )


def _receipt_from_dict(d: dict) -> Receipt:
    image = _optional_str(d, "imageData")
    try:
        image_data = base64.b64decode(image, validate=True) if image is not None else None
    except binascii.Error as e:
        raise ValueError(f"imageData is not valid base64: {e}") from e
    return Receipt(
        id=_uuid(d, "id"),
        supplier=_str(d, "supplier"),
        date=_date(d, "date"),
        total=_number(d, "total"),
        items=_int(d, "items"),
        image_data=image_data,
        location=_str(d, "location"),
        ocr_text=_optional_str(d, "ocrText"),
    )


def _expense_from_dict(d: dict) -> Expense:
    return Expense(
        id=_uuid(d, "id"),
        date=_date(d, "date"),
        amount=_number(d, "amount"),
        category=_str(d, "category"),
        product_name=_optional_str(d, "productName"),
        quantity=_int(d, "quantity"),
        location=_str(d, "location"),
        notes=_optional_str(d, "notes"),
    )


def _check_unique_names(products: list[Product]) -> None:
    seen: set[str] = set()
    for p in products:
        key = p.name.casefold()
        if key in seen:
            raise ValueError(f"duplicate product name {p.name!r}")
        seen.add(key)


def _field(d: dict, key: str) -> Any:
    if key not in d:
        raise KeyError(f"missing field {key!r}")
    return d[key]


def _expect(value: Any, kind: type, name: str) -> Any:
    if not isinstance(value, kind):
        raise TypeError(f"{name} must be {kind.__name__}, got {type(value).__name__}")
    return value


def _str(d: dict, key: str) -> str:
    return _expect(_field(d, key), str, key)


def _optional_str(d: dict, key: str) -> str | None:
    value = d.get(key)
    return None if value is None else _expect(value, str, key)


def _int(d: dict, key: str) -> int:
    value = _field(d, key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer")
    return value


def _number(d: dict, key: str) -> float:
    value = _field(d, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number")
    return float(value)


def _uuid(d: dict, key: str) -> uuid.UUID:
    return uuid.UUID(_str(d, key))


def _date(d: dict, key: str) -> datetime:
    return from_iso8601(_str(d, key))
