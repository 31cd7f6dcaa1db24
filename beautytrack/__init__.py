"""Salon inventory ledger with receipt ingestion and backups."""

from .alerts import LowStockAlert, should_alert
from .backup import (
    BackupBundle,
    decode_backup,
    encode_backup,
    export_backup,
    restore_backup,
    write_backup_file,
)
from .categories import CategoryRegistry
from .config import BeautyTrackConfig, load_config
from .errors import BackupError, LedgerError, PersistenceError, ValidationError
from .ledger import Ledger, LedgerEvent
from .models import (
    Expense,
    Product,
    Receipt,
    ReceiptItem,
    StockStatus,
    UrgencyLevel,
    normalize_category,
)
from .receipts import ParsedReceipt, ParsedReceiptItem, ReceiptIntake, parse_lines

__all__ = [
    "Product",
    "Expense",
    "Receipt",
    "ReceiptItem",
    "StockStatus",
    "UrgencyLevel",
    "normalize_category",
    "CategoryRegistry",
    "Ledger",
    "LedgerEvent",
    "LowStockAlert",
    "should_alert",
    "BackupBundle",
    "export_backup",
    "encode_backup",
    "decode_backup",
    "restore_backup",
    "write_backup_file",
    "ParsedReceipt",
    "ParsedReceiptItem",
    "ReceiptIntake",
    "parse_lines",
    "BeautyTrackConfig",
    "load_config",
    "LedgerError",
    "ValidationError",
    "PersistenceError",
    "BackupError",
]
