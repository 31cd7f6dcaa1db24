"""SQLite persistence for products, expenses, receipts and receipt items."""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from ..errors import PersistenceError
from ..models import (
    Expense,
    Product,
    Receipt,
    ReceiptItem,
    from_iso8601,
    to_iso8601,
)
from .schema import open_database

DEFAULT_DB_PATH = "~/.config/beautytrack/ledger.db"


class LedgerStore:
    """Manages the products, expenses, receipts and receipt_items tables.

    Write methods do not commit on their own; wrap them in transaction()
    so that a product change and its expense land together or not at all.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._persistent = False

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn, self._persistent = open_database(self._db_path)
        return self._conn

    @property
    def persistent(self) -> bool:
        """False when the store degraded to an in-memory database."""
        self._get_conn()
        return self._persistent

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success; roll back and raise PersistenceError on failure."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Store write failed: {e}") from e
        except BaseException:
            conn.rollback()
            raise

    # -- products --

    def insert_product(self, product: Product) -> None:
        self._get_conn().execute(
            """INSERT INTO products
               (id, name, sku, category, supplier, current_stock, min_stock,
                max_stock, usage_rate, last_updated, cost_per_unit,
                reorder_days, location)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            _product_params(product),
        )

    def update_product(self, product: Product) -> None:
        params = _product_params(product)
        cur = self._get_conn().execute(
            """UPDATE products
               SET name = ?, sku = ?, category = ?, supplier = ?,
                   current_stock = ?, min_stock = ?, max_stock = ?,
                   usage_rate = ?, last_updated = ?, cost_per_unit = ?,
                   reorder_days = ?, location = ?
               WHERE id = ?""",
            params[1:] + params[:1],
        )
        if cur.rowcount == 0:
            raise sqlite3.IntegrityError(f"no product with id {product.id}")

    def delete_product(self, product_id: uuid.UUID) -> None:
        self._get_conn().execute(
            "DELETE FROM products WHERE id = ?", (str(product_id),)
        )

    def load_products(self) -> list[Product]:
        rows = self._get_conn().execute(
            "SELECT * FROM products ORDER BY name"
        ).fetchall()
        return [
            Product(
                id=uuid.UUID(r["id"]),
                name=r["name"],
                sku=r["sku"],
                category=r["category"],
                supplier=r["supplier"],
                current_stock=r["current_stock"],
                min_stock=r["min_stock"],
                max_stock=r["max_stock"],
                usage_rate=r["usage_rate"],
                last_updated=from_iso8601(r["last_updated"]),
                cost_per_unit=r["cost_per_unit"],
                reorder_days=r["reorder_days"],
                location=r["location"],
            )
            for r in rows
        ]

    # -- expenses --

    def insert_expense(self, expense: Expense) -> None:
        self._get_conn().execute(
            """INSERT INTO expenses
               (id, date, amount, category, product_name, quantity,
                location, notes)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                str(expense.id),
                to_iso8601(expense.date),
                expense.amount,
                expense.category,
                expense.product_name,
                expense.quantity,
                expense.location,
                expense.notes,
            ),
        )

    def load_expenses(self) -> list[Expense]:
        rows = self._get_conn().execute(
            "SELECT * FROM expenses ORDER BY date DESC"
        ).fetchall()
        return [
            Expense(
                id=uuid.UUID(r["id"]),
                date=from_iso8601(r["date"]),
                amount=r["amount"],
                category=r["category"],
                product_name=r["product_name"],
                quantity=r["quantity"],
                location=r["location"],
                notes=r["notes"],
            )
            for r in rows
        ]

    # -- receipts --

    def insert_receipt(self, receipt: Receipt) -> None:
        self._get_conn().execute(
            """INSERT INTO receipts
               (id, supplier, date, total, items, image_data, location,
                ocr_text)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                str(receipt.id),
                receipt.supplier,
                to_iso8601(receipt.date),
                receipt.total,
                receipt.items,
                receipt.image_data,
                receipt.location,
                receipt.ocr_text,
            ),
        )

    def insert_receipt_items(self, items: Iterable[ReceiptItem]) -> None:
        self._get_conn().executemany(
            """INSERT INTO receipt_items
               (id, product_name, quantity, unit_price, total_price,
                confidence, status)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [
                (
                    str(item.id),
                    item.product_name,
                    item.quantity,
                    item.unit_price,
                    item.total_price,
                    item.confidence,
                    item.status,
                )
                for item in items
            ],
        )

    def load_receipts(self) -> list[Receipt]:
        rows = self._get_conn().execute(
            "SELECT * FROM receipts ORDER BY date"
        ).fetchall()
        return [
            Receipt(
                id=uuid.UUID(r["id"]),
                supplier=r["supplier"],
                date=from_iso8601(r["date"]),
                total=r["total"],
                items=r["items"],
                image_data=bytes(r["image_data"]) if r["image_data"] is not None else None,
                location=r["location"],
                ocr_text=r["ocr_text"],
            )
            for r in rows
        ]

    def load_receipt_items(self) -> list[ReceiptItem]:
        rows = self._get_conn().execute("SELECT * FROM receipt_items").fetchall()
        return [
            ReceiptItem(
                id=uuid.UUID(r["id"]),
                product_name=r["product_name"],
                quantity=r["quantity"],
                unit_price=r["unit_price"],
                total_price=r["total_price"],
                confidence=r["confidence"],
                status=r["status"],
            )
            for r in rows
        ]

    # -- restore --

    def replace_all(
        self,
        products: Iterable[Product],
        receipts: Iterable[Receipt],
        expenses: Iterable[Expense],
    ) -> None:
        """Delete every product, receipt and expense and insert the given ones.

        Receipt items have no backup representation and are left alone.
        """
        conn = self._get_conn()
        conn.execute("DELETE FROM products")
        conn.execute("DELETE FROM receipts")
        conn.execute("DELETE FROM expenses")
        for product in products:
            self.insert_product(product)
        for receipt in receipts:
            self.insert_receipt(receipt)
        for expense in expenses:
            self.insert_expense(expense)


def _product_params(product: Product) -> tuple:
    return (
        str(product.id),
        product.name,
        product.sku,
        product.category,
        product.supplier,
        product.current_stock,
        product.min_stock,
        product.max_stock,
        product.usage_rate,
        to_iso8601(product.last_updated),
        product.cost_per_unit,
        product.reorder_days,
        product.location,
    )
