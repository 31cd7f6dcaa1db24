"""Authoritative inventory state and the expense trail derived from it."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from .alerts import LowStockAlert, low_stock_message, should_alert
from .categories import CategoryRegistry, KeyValueStore
from .db.store import LedgerStore
from .errors import PersistenceError, ValidationError
from .models import (
    STOCK_PURCHASE,
    STOCK_SPENT,
    SUPPLIES,
    Expense,
    Product,
    Receipt,
    ReceiptItem,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS: list[str] = ["downtown", "midtown", "westside"]

LOCATIONS_KEY = "inventory.locations"
CURRENT_LOCATION_KEY = "inventory.currentLocation"

# Fields a caller may edit through update_product; stock goes through
# adjust_stock so that every change leaves an expense behind.
_EDITABLE_FIELDS = frozenset(
    {"name", "sku", "category", "supplier", "min_stock", "max_stock",
     "cost_per_unit", "location"}
)


@dataclass
class LedgerEvent:
    """Change notification published to subscribers.

    kind is one of "products", "receipts", "expenses", "locations",
    "last_created_expense" or "restored".
    """

    kind: str
    payload: Any = None


Subscriber = Callable[[LedgerEvent], None]
Notifier = Callable[[LowStockAlert], None]


class Ledger:
    """Owns products, receipts, receipt items and expenses.

    Every mutation is written to the store in a single transaction before
    the in-memory collections change, so observers never see a product
    update without its paired expense. A failed write is rolled back,
    logged and re-raised as PersistenceError.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        categories: CategoryRegistry | None = None,
        preferences: KeyValueStore | None = None,
        locations: Sequence[str] | None = None,
        current_location: str | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._store = store
        self._categories = categories
        self._preferences = preferences
        self._notifier = notifier
        self._subscribers: list[Subscriber] = []

        self.products: list[Product] = []
        self.receipts: list[Receipt] = []
        self.receipt_items: list[ReceiptItem] = []
        self.expenses: list[Expense] = []
        self.last_created_expense: Expense | None = None

        default_locations = list(DEFAULT_LOCATIONS if locations is None else locations)
        if preferences is not None:
            default_locations = preferences.get(LOCATIONS_KEY, default_locations)
            current_location = preferences.get(CURRENT_LOCATION_KEY, current_location)
        self.locations: list[str] = list(default_locations)
        if current_location is None:
            current_location = self.locations[0] if self.locations else ""
        self.current_location: str = current_location

        # No toasts for records that merely come back from the store.
        self._suppress_expense_toasts = True
        try:
            self.load()
        finally:
            self._suppress_expense_toasts = False

    # -- observation --

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, kind: str, payload: Any = None) -> None:
        event = LedgerEvent(kind, payload)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber failed handling %s event", kind)

    # -- loading --

    def load(self) -> None:
        """Replace in-memory collections with the store's contents."""
        try:
            self.products = self._store.load_products()
            self.receipts = self._store.load_receipts()
            self.receipt_items = self._store.load_receipt_items()
            self.expenses = self._store.load_expenses()
        except PersistenceError:
            raise
        except Exception as e:
            logger.exception("Failed to load ledger data")
            raise PersistenceError(f"Could not load ledger data: {e}") from e
        logger.info(
            "Loaded %d products, %d receipts, %d expenses",
            len(self.products),
            len(self.receipts),
            len(self.expenses),
        )

    @contextmanager
    def _write(self, action: str) -> Iterator[None]:
        try:
            with self._store.transaction():
                yield
        except PersistenceError:
            logger.exception("Failed to persist %s; change rolled back", action)
            raise

    # -- lookup --

    def find_product(self, name: str) -> Product | None:
        key = name.casefold()
        return next((p for p in self.products if p.name.casefold() == key), None)

    def get_product(self, product_id: uuid.UUID) -> Product | None:
        return next((p for p in self.products if p.id == product_id), None)

    def search_products(self, query: str) -> list[Product]:
        """Case-insensitive match on name, SKU, category or supplier."""
        if not query:
            return list(self.products)
        q = query.casefold()
        return [
            p
            for p in self.products
            if q in p.name.casefold()
            or (p.sku is not None and q in p.sku.casefold())
            or q in p.category.casefold()
            or q in p.supplier.casefold()
        ]

    def product_expenses(self, product_name: str) -> list[Expense]:
        """Expense history recorded under a product name, newest first."""
        return sorted(
            (e for e in self.expenses if e.product_name == product_name),
            key=lambda e: e.date,
            reverse=True,
        )

    def _require_canonical(self, product: Product) -> Product:
        existing = self.get_product(product.id)
        if existing is None:
            raise ValidationError(f"Unknown product: {product.name!r}")
        return existing

    # -- product mutations --

    def add_product(self, candidate: Product) -> Product:
        """Insert a product, or restock an existing one with the same name.

        A name match (case-insensitive) adds candidate.current_stock on top
        of the existing stock and records a "Stock Purchase" for the added
        units. A candidate with no stock leaves the existing product alone.

        Returns:
            The canonical product.
        """
        if not candidate.name.strip():
            raise ValidationError("Product name must not be empty")
        if candidate.current_stock < 0:
            raise ValidationError("Stock must not be negative")
        if self._categories is not None and not self._categories.is_known(candidate.category):
            raise ValidationError(f"Unknown category: {candidate.category!r}")

        existing = self.find_product(candidate.name)
        if existing is not None:
            return self._restock(existing, candidate)

        expense: Expense | None = None
        if candidate.current_stock > 0:
            expense = Expense(
                amount=candidate.current_stock * candidate.cost_per_unit,
                category=STOCK_PURCHASE,
                product_name=candidate.name,
                quantity=candidate.current_stock,
                location=self.current_location,
                notes="Initial stock for new product",
            )

        with self._write("new product"):
            self._store.insert_product(candidate)
            if expense is not None:
                self._store.insert_expense(expense)

        self.products.append(candidate)
        self._publish("products", candidate)
        self._advise(candidate)
        if expense is not None:
            logger.info(
                "Initial Stock Purchase for new product %r amount=%.2f qty=%d",
                candidate.name,
                expense.amount,
                expense.quantity,
            )
            self._record_expense(expense)
        return candidate

    def _restock(self, existing: Product, candidate: Product) -> Product:
        delta = candidate.current_stock
        if delta <= 0:
            return existing

        updated = dataclasses.replace(
            existing,
            current_stock=existing.current_stock + delta,
            last_updated=utcnow(),
        )
        updated.update_usage_rate()
        expense = Expense(
            amount=delta * candidate.cost_per_unit,
            category=STOCK_PURCHASE,
            product_name=candidate.name,
            quantity=delta,
            location=self.current_location,
            notes="Additional stock for existing product",
        )

        with self._write("restock"):
            self._store.update_product(updated)
            self._store.insert_expense(expense)

        _copy_fields(updated, existing)
        self._publish("products", existing)
        self._advise(existing)
        logger.info(
            "Additional stock for existing product %r amount=%.2f qty=%d",
            candidate.name,
            expense.amount,
            expense.quantity,
        )
        self._record_expense(expense)
        return existing

    def adjust_stock(self, product: Product, new_stock: int) -> Expense | None:
        """Set a product's stock, recording the difference as an expense.

        Returns:
            The emitted expense, or None when the stock did not change.
        """
        if new_stock < 0:
            raise ValidationError("Stock must not be negative")
        existing = self._require_canonical(product)

        delta = new_stock - existing.current_stock
        updated = dataclasses.replace(
            existing, current_stock=new_stock, last_updated=utcnow()
        )
        updated.update_usage_rate()

        expense: Expense | None = None
        if delta != 0:
            expense = Expense(
                amount=abs(delta) * existing.cost_per_unit,
                category=STOCK_PURCHASE if delta > 0 else STOCK_SPENT,
                product_name=existing.name,
                quantity=abs(delta),
                location=self.current_location,
                notes="Manual stock increase" if delta > 0 else "Manual stock decrease",
            )

        with self._write("stock adjustment"):
            self._store.update_product(updated)
            if expense is not None:
                self._store.insert_expense(expense)

        _copy_fields(updated, existing)
        self._publish("products", existing)
        self._advise(existing)
        if expense is not None:
            logger.info(
                "Created Expense: %s %.2f for product=%s qty=%d",
                expense.category,
                expense.amount,
                expense.product_name,
                expense.quantity,
            )
            self._record_expense(expense)
        return expense

    def add_stock(self, product: Product, quantity: int) -> Expense | None:
        """Receive units into stock, recording a "Stock Purchase"."""
        if quantity < 0:
            raise ValidationError("Quantity must not be negative")
        existing = self._require_canonical(product)
        return self.adjust_stock(existing, existing.current_stock + quantity)

    def remove_stock(self, product: Product, quantity: int) -> Expense | None:
        """Take units out of stock, clamping at zero, recording a "Stock Spent"."""
        if quantity < 0:
            raise ValidationError("Quantity must not be negative")
        existing = self._require_canonical(product)
        return self.adjust_stock(existing, max(0, existing.current_stock - quantity))

    def update_product(self, product: Product, **changes: Any) -> Product:
        """Persist edits to a product without recording an expense.

        Edits can be made in place on the product before calling, or passed
        as keyword arguments, which are applied only once the write succeeds.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        existing = self._require_canonical(product)
        if "name" in changes:
            clash = self.find_product(changes["name"])
            if clash is not None and clash.id != existing.id:
                raise ValidationError(f"Product already exists: {changes['name']!r}")
        if (
            "category" in changes
            and self._categories is not None
            and not self._categories.is_known(changes["category"])
        ):
            raise ValidationError(f"Unknown category: {changes['category']!r}")
        updated = dataclasses.replace(existing, **changes)
        if not updated.name.strip():
            raise ValidationError("Product name must not be empty")

        with self._write("product update"):
            self._store.update_product(updated)

        _copy_fields(updated, existing)
        self._publish("products", existing)
        return existing

    def delete_product(self, product: Product) -> None:
        """Remove a product. Its expenses stay in the ledger."""
        with self._write("product deletion"):
            self._store.delete_product(product.id)

        self.products = [p for p in self.products if p.id != product.id]
        logger.info("Deleted product %r", product.name)
        self._publish("products", None)

    # -- receipts --

    def add_parsed_receipt(
        self,
        supplier: str,
        total: float,
        location: str,
        items: Sequence[ReceiptItem],
        *,
        ocr_text: str | None = None,
        image_data: bytes | None = None,
    ) -> Receipt:
        """Record a receipt, its items and one "Supplies" expense.

        Product stock is not touched; reconciling items into inventory is
        up to the caller.
        """
        items = list(items)
        receipt = Receipt(
            supplier=supplier,
            date=utcnow(),
            total=total,
            items=len(items),
            location=location,
            image_data=image_data,
            ocr_text=ocr_text,
        )
        self._insert_receipt(receipt, items, with_expense=True)
        return receipt

    def add_receipt(
        self, receipt: Receipt, items: Sequence[ReceiptItem] | None = None
    ) -> None:
        """Record a prebuilt receipt.

        With items, a "Supplies" expense for the receipt total is recorded
        too; without, only the receipt is stored.
        """
        self._insert_receipt(receipt, list(items or []), with_expense=items is not None)

    def _insert_receipt(
        self, receipt: Receipt, items: list[ReceiptItem], *, with_expense: bool
    ) -> None:
        expense: Expense | None = None
        if with_expense:
            expense = Expense(
                amount=receipt.total,
                category=SUPPLIES,
                product_name=None,
                quantity=len(items),
                location=receipt.location,
                notes=f"Receipt from {receipt.supplier}",
            )

        with self._write("receipt"):
            self._store.insert_receipt_items(items)
            self._store.insert_receipt(receipt)
            if expense is not None:
                self._store.insert_expense(expense)

        self.receipt_items.extend(items)
        self.receipts.append(receipt)
        self._publish("receipts", receipt)
        logger.info(
            "Recorded receipt from %r total=%.2f items=%d",
            receipt.supplier,
            receipt.total,
            len(items),
        )
        if expense is not None:
            self.expenses.append(expense)
            self._publish("expenses", expense)

    # -- restore --

    def replace_dataset(
        self,
        products: Sequence[Product],
        receipts: Sequence[Receipt],
        expenses: Sequence[Expense],
        locations: Sequence[str],
        current_location: str,
    ) -> None:
        """Destructively replace every product, receipt and expense.

        Any pending "just created" expense is cleared, and no new one is
        announced while the replacement runs.
        """
        self._suppress_expense_toasts = True
        try:
            self.last_created_expense = None
            self._publish("last_created_expense", None)

            with self._write("restore"):
                self._store.replace_all(products, receipts, expenses)

            self.products = list(products)
            self.receipts = list(receipts)
            self.expenses = list(expenses)
            self._set_locations(list(locations), current_location)
            logger.info(
                "Restored %d products, %d receipts, %d expenses",
                len(self.products),
                len(self.receipts),
                len(self.expenses),
            )
            self._publish("restored", None)
        finally:
            self._suppress_expense_toasts = False

    # -- locations --

    def add_location(self, location: str) -> bool:
        loc = location.strip()
        if not loc or loc in self.locations:
            return False
        self._set_locations([*self.locations, loc], self.current_location)
        return True

    def remove_location(self, location: str) -> bool:
        if location not in self.locations:
            return False
        remaining = [loc for loc in self.locations if loc != location]
        current = self.current_location
        if current not in remaining:
            current = remaining[0] if remaining else ""
        self._set_locations(remaining, current)
        return True

    def set_current_location(self, location: str) -> None:
        if location not in self.locations:
            raise ValidationError(f"Unknown location: {location!r}")
        self._set_locations(self.locations, location)

    def _set_locations(self, locations: list[str], current: str) -> None:
        self.locations = locations
        self.current_location = current
        if self._preferences is not None:
            self._preferences.set(LOCATIONS_KEY, locations)
            self._preferences.set(CURRENT_LOCATION_KEY, current)
        self._publish("locations", (list(locations), current))

    # -- expense announcements --

    def _record_expense(self, expense: Expense) -> None:
        self.expenses.append(expense)
        self._publish("expenses", expense)
        if not self._suppress_expense_toasts:
            self.last_created_expense = expense
            self._publish("last_created_expense", expense)

    def dismiss_expense_toast(self, expense_id: uuid.UUID) -> bool:
        """Clear the "just created" expense if it is still the given one."""
        current = self.last_created_expense
        if current is None or current.id != expense_id:
            return False
        self.last_created_expense = None
        self._publish("last_created_expense", None)
        return True

    # -- alerts --

    def _advise(self, product: Product) -> None:
        if not should_alert(product):
            return
        alert = low_stock_message(product, utcnow())
        logger.info("Low stock: %s", alert.body)
        if self._notifier is None:
            return
        try:
            self._notifier(alert)
        except Exception:
            logger.exception("Failed to deliver low stock alert for %r", product.name)


def _copy_fields(source: Product, target: Product) -> None:
    for f in dataclasses.fields(Product):
        setattr(target, f.name, getattr(source, f.name))
