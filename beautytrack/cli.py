"""CLI entry point for the inventory ledger."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from .alerts import LowStockAlert
from .backup import read_backup_file, write_backup_file
from .categories import CategoryRegistry
from .config import BeautyTrackConfig, load_config
from .db import LedgerStore, PreferencesDB
from .errors import LedgerError
from .ledger import Ledger
from .models import Product
from .receipts import ReceiptIntake
from .reports import (
    TimeRange,
    category_breakdown,
    expense_totals,
    filter_expenses,
    recent_expenses,
    reorder_candidates,
)

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="beautytrack",
        description="Salon inventory ledger: stock, expenses, receipts and backups",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Path to a TOML config file"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show log output")

    sub = parser.add_subparsers(dest="command")

    products_parser = sub.add_parser("products", help="List products")
    products_parser.add_argument("--search", type=str, default="", help="Filter by text")

    add_parser = sub.add_parser("add-product", help="Add a product or restock one")
    add_parser.add_argument("name")
    add_parser.add_argument("--category", type=str, default=None)
    add_parser.add_argument("--supplier", type=str, default="")
    add_parser.add_argument("--sku", type=str, default=None)
    add_parser.add_argument("--stock", type=int, default=0)
    add_parser.add_argument("--min", dest="min_stock", type=int, default=5)
    add_parser.add_argument("--max", dest="max_stock", type=int, default=20)
    add_parser.add_argument("--cost", type=float, default=0.0)
    add_parser.add_argument("--location", type=str, default=None)

    adjust_parser = sub.add_parser("adjust", help="Set a product's stock level")
    adjust_parser.add_argument("name")
    adjust_parser.add_argument("stock", type=int)

    delete_parser = sub.add_parser("delete", help="Delete a product")
    delete_parser.add_argument("name")

    scan_parser = sub.add_parser("scan", help="Record a receipt from a photo or text")
    source = scan_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", type=str, help="Receipt photo to run OCR on")
    source.add_argument("--text", type=str, help="Text file with one receipt line per line")
    scan_parser.add_argument("--location", type=str, default=None)

    expenses_parser = sub.add_parser("expenses", help="Summarize expenses")
    expenses_parser.add_argument(
        "--range",
        dest="time_range",
        choices=[r.value for r in TimeRange],
        default=TimeRange.ALL_TIME.value,
    )
    expenses_parser.add_argument("--json", action="store_true", help="JSON output")

    sub.add_parser("reorder", help="List products that need reordering")

    export_parser = sub.add_parser("export", help="Write a backup file")
    export_parser.add_argument("--dir", type=str, default=None, help="Output directory")

    import_parser = sub.add_parser("import", help="Restore from a backup file")
    import_parser.add_argument("file")

    cat_parser = sub.add_parser("categories", help="List or edit categories")
    cat_parser.add_argument("--add", type=str, default=None)
    cat_parser.add_argument("--remove", type=str, default=None)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    config = load_config(args.config)
    store = LedgerStore(config.database.path)
    preferences = PreferencesDB(config.database.path)
    try:
        registry = CategoryRegistry(preferences)
        ledger = Ledger(
            store,
            categories=registry,
            preferences=preferences,
            locations=config.locations.names,
            current_location=config.locations.current,
            notifier=_print_alert if config.notifications.low_stock_alerts else None,
        )
        if not store.persistent:
            print("Warning: database unavailable, changes will not be saved.", file=sys.stderr)

        match args.command:
            case "products":
                _cmd_products(ledger, args)
            case "add-product":
                _cmd_add_product(ledger, registry, args)
            case "adjust":
                _cmd_adjust(ledger, args)
            case "delete":
                _cmd_delete(ledger, args)
            case "scan":
                asyncio.run(_cmd_scan(ledger, config, args))
            case "expenses":
                _cmd_expenses(ledger, args)
            case "reorder":
                _cmd_reorder(ledger)
            case "export":
                _cmd_export(ledger, config, args)
            case "import":
                _cmd_import(ledger, args)
            case "categories":
                _cmd_categories(registry, args)
    except LedgerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (ImportError, OSError, RuntimeError, ValueError) as e:
        # OCR setup and receipt file problems from scan
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        store.close()
        preferences.close()


def _print_alert(alert: LowStockAlert) -> None:
    print(f"⚠  {alert.title}: {alert.body}")


def _find_or_exit(ledger: Ledger, name: str) -> Product:
    product = ledger.find_product(name)
    if product is None:
        print(f"No product named {name!r}.", file=sys.stderr)
        sys.exit(1)
    return product


def _cmd_products(ledger: Ledger, args) -> None:
    products = ledger.search_products(args.search)
    if not products:
        print("No products found.")
        return
    for p in sorted(products, key=lambda p: p.name.casefold()):
        print(
            f"  {p.name:<30} {p.current_stock:>5} in stock  "
            f"[{p.stock_status.value}/{p.urgency_level.value}]  "
            f"{p.category} · {p.location}"
        )


def _cmd_add_product(ledger: Ledger, registry: CategoryRegistry, args) -> None:
    candidate = Product(
        name=args.name.strip(),
        sku=args.sku,
        category=args.category or registry.default_name,
        supplier=args.supplier,
        current_stock=args.stock,
        min_stock=args.min_stock,
        max_stock=args.max_stock,
        cost_per_unit=args.cost,
        location=args.location or ledger.current_location,
    )
    product = ledger.add_product(candidate)
    print(f"{product.name}: {product.current_stock} in stock")
    if ledger.last_created_expense is not None:
        e = ledger.last_created_expense
        print(f"Expense recorded: ${e.amount:.2f} ({e.normalized_category})")


def _cmd_adjust(ledger: Ledger, args) -> None:
    product = _find_or_exit(ledger, args.name)
    expense = ledger.adjust_stock(product, args.stock)
    print(f"{product.name}: {product.current_stock} in stock")
    if expense is not None:
        print(f"Expense recorded: ${expense.amount:.2f} ({expense.normalized_category})")


def _cmd_delete(ledger: Ledger, args) -> None:
    product = _find_or_exit(ledger, args.name)
    ledger.delete_product(product)
    print(f"Deleted {product.name}")


async def _cmd_scan(ledger: Ledger, config: BeautyTrackConfig, args) -> None:
    if args.image:
        from .ocr import create_recognizer

        intake = ReceiptIntake(ledger, create_recognizer(config))
        print("Reading receipt...")
        receipt = await intake.scan_image(args.image, args.location)
    else:
        lines = Path(args.text).read_text(encoding="utf-8").splitlines()
        intake = ReceiptIntake(ledger)
        receipt = await intake.ingest_lines(lines, args.location)

    print(
        f"Parsed receipt from {receipt.supplier} with {receipt.items} items, "
        f"total ${receipt.total:.2f}"
    )


def _cmd_expenses(ledger: Ledger, args) -> None:
    now = datetime.now().astimezone()
    expenses = filter_expenses(
        ledger.expenses, TimeRange(args.time_range), ledger.current_location, now
    )
    totals = expense_totals(expenses)
    breakdown = category_breakdown(expenses, ledger.products)

    if args.json:
        data = {
            "location": ledger.current_location,
            "range": args.time_range,
            "net": totals.net,
            "purchased": totals.purchased,
            "usage": totals.usage,
            "categories": [{"name": c.name, "total": c.total} for c in breakdown],
        }
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    print(f"Net expense: ${totals.net:.2f}")
    print(f"  purchased ${totals.purchased:.2f}, used ${totals.usage:.2f}")
    if breakdown:
        print("\nBy category:")
        for c in breakdown:
            print(f"  {c.name:<24} ${c.total:>10.2f}")
    recent = recent_expenses(expenses)
    if recent:
        print("\nRecent:")
        for e in recent:
            label = e.product_name or e.normalized_category
            print(f"  {label:<24} ${e.amount:>10.2f}  x{e.quantity}")


def _cmd_reorder(ledger: Ledger) -> None:
    candidates = reorder_candidates(ledger.products)
    if not candidates:
        print("Everything looks stocked for now.")
        return
    for p in candidates:
        print(f"  {p.name:<30} {p.current_stock:>5} left  [{p.urgency_level.value}]")


def _cmd_export(ledger: Ledger, config: BeautyTrackConfig, args) -> None:
    path = write_backup_file(ledger, args.dir or config.backup.export_dir or None)
    print(f"Backup written: {path}")


def _cmd_import(ledger: Ledger, args) -> None:
    bundle = read_backup_file(ledger, args.file)
    print(
        f"Restored {len(bundle.products)} products, {len(bundle.receipts)} receipts, "
        f"{len(bundle.expenses)} expenses"
    )


def _cmd_categories(registry: CategoryRegistry, args) -> None:
    if args.add:
        if not registry.add_custom(args.add):
            print(f"Category already exists: {args.add}")
    if args.remove:
        if not registry.remove_custom(args.remove):
            print(f"No custom category named {args.remove!r}")
    for name in registry.names:
        print(f"  {name}")


if __name__ == "__main__":
    main()
