"""Tests for the Ledger: product mutations, receipts, locations and events."""

import sqlite3
from datetime import datetime, timezone

import pytest

from beautytrack.categories import CategoryRegistry
from beautytrack.db import LedgerStore, PreferencesDB
from beautytrack.errors import PersistenceError, ValidationError
from beautytrack.ledger import CURRENT_LOCATION_KEY, LOCATIONS_KEY, Ledger
from beautytrack.models import Product, ReceiptItem


@pytest.fixture
def store(tmp_path):
    s = LedgerStore(tmp_path / "test.db")
    yield s
    s.close()


@pytest.fixture
def ledger(store):
    return Ledger(store)


def make_product(name="Purple Shampoo", stock=5, cost=4.0, **overrides) -> Product:
    fields = dict(
        name=name,
        category="Wash House",
        supplier="Salon Centric",
        current_stock=stock,
        min_stock=2,
        max_stock=30,
        cost_per_unit=cost,
        location="downtown",
    )
    fields.update(overrides)
    return Product(**fields)


def make_item(name="Shampoo", qty=2, price=12.99) -> ReceiptItem:
    return ReceiptItem(
        product_name=name,
        quantity=qty,
        unit_price=price,
        total_price=qty * price,
        confidence=0.9,
        status="matched",
    )


class TestAddProduct:
    def test_new_product_with_stock(self, ledger):
        product = ledger.add_product(make_product(stock=5, cost=4.0))

        assert ledger.products == [product]
        assert len(ledger.expenses) == 1
        expense = ledger.expenses[0]
        assert expense.category == "Stock Purchase"
        assert expense.amount == 20.0
        assert expense.quantity == 5
        assert expense.product_name == "Purple Shampoo"
        assert expense.notes == "Initial stock for new product"
        assert ledger.last_created_expense == expense

    def test_new_product_without_stock(self, ledger):
        ledger.add_product(make_product(stock=0))
        assert len(ledger.products) == 1
        assert ledger.expenses == []
        assert ledger.last_created_expense is None

    def test_same_name_restocks(self, ledger):
        first = ledger.add_product(make_product(stock=5))
        again = ledger.add_product(make_product(name="purple shampoo", stock=3))

        assert again is first
        assert len(ledger.products) == 1
        assert first.current_stock == 8
        purchases = [e for e in ledger.expenses if e.category == "Stock Purchase"]
        assert [e.quantity for e in purchases] == [5, 3]
        assert purchases[1].notes == "Additional stock for existing product"
        # 8 / 0.5 * 7
        assert first.reorder_days == 112

    def test_same_name_without_stock_is_noop(self, ledger):
        first = ledger.add_product(make_product(stock=5))
        ledger.add_product(make_product(stock=0))
        assert first.current_stock == 5
        assert len(ledger.expenses) == 1

    def test_new_product_keeps_default_reorder_days(self, ledger):
        product = ledger.add_product(make_product(stock=20))
        assert product.reorder_days == 6

    def test_empty_name_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_product(make_product(name="   "))
        assert ledger.products == []

    def test_negative_stock_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_product(make_product(stock=-1))

    def test_unknown_category_rejected(self, store, tmp_path):
        prefs = PreferencesDB(tmp_path / "test.db")
        try:
            ledger = Ledger(store, categories=CategoryRegistry(prefs))
            with pytest.raises(ValidationError, match="Unknown category"):
                ledger.add_product(make_product(category="Groceries"))
            ledger.add_product(make_product(category="wash house"))
            assert len(ledger.products) == 1
        finally:
            prefs.close()

    def test_expense_location_is_current_location(self, store):
        ledger = Ledger(store, current_location="midtown")
        ledger.add_product(make_product(location="downtown"))
        assert ledger.expenses[0].location == "midtown"

    def test_persisted(self, ledger, store):
        ledger.add_product(make_product(stock=5))
        reloaded = Ledger(store)
        assert [p.name for p in reloaded.products] == ["Purple Shampoo"]
        assert len(reloaded.expenses) == 1


class TestAdjustStock:
    def test_decrease_records_stock_spent(self, ledger):
        product = ledger.add_product(make_product(stock=10, cost=3.0))
        expense = ledger.adjust_stock(product, 4)

        assert product.current_stock == 4
        assert expense is not None
        assert expense.category == "Stock Spent"
        assert expense.quantity == 6
        assert expense.amount == 18.0
        assert expense.notes == "Manual stock decrease"
        assert ledger.last_created_expense == expense

    def test_increase_records_stock_purchase(self, ledger):
        product = ledger.add_product(make_product(stock=1, cost=3.0))
        expense = ledger.adjust_stock(product, 3)

        assert expense.category == "Stock Purchase"
        assert expense.quantity == 2
        assert expense.notes == "Manual stock increase"

    def test_same_value_records_nothing(self, ledger):
        product = ledger.add_product(make_product(stock=5))
        old = datetime(2020, 1, 1, tzinfo=timezone.utc)
        product.last_updated = old
        before = list(ledger.expenses)

        assert ledger.adjust_stock(product, 5) is None
        assert ledger.expenses == before
        assert product.current_stock == 5
        assert product.cost_per_unit == 4.0
        assert product.category == "Wash House"
        assert product.name == "Purple Shampoo"
        assert product.last_updated > old

    def test_recomputes_reorder_days(self, ledger):
        product = ledger.add_product(make_product(stock=5))
        ledger.adjust_stock(product, 1)
        assert product.reorder_days == 14

    def test_negative_rejected(self, ledger):
        product = ledger.add_product(make_product(stock=5))
        with pytest.raises(ValidationError):
            ledger.adjust_stock(product, -2)
        assert product.current_stock == 5

    def test_unknown_product_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.adjust_stock(make_product(), 3)

    def test_stock_and_expense_persisted_together(self, ledger, store):
        product = ledger.add_product(make_product(stock=5))
        ledger.adjust_stock(product, 2)

        reloaded = Ledger(store)
        assert reloaded.products[0].current_stock == 2
        assert {e.category for e in reloaded.expenses} == {"Stock Purchase", "Stock Spent"}


class TestAddRemoveStock:
    def test_remove_records_spent(self, ledger):
        product = ledger.add_product(make_product(stock=5))
        expense = ledger.remove_stock(product, 3)

        assert product.current_stock == 2
        assert expense.category == "Stock Spent"
        assert expense.quantity == 3
        assert expense.amount == pytest.approx(12.0)
        assert ledger.expenses[-1] is expense

    def test_remove_clamps_at_zero(self, ledger):
        product = ledger.add_product(make_product(stock=2))
        expense = ledger.remove_stock(product, 5)

        assert product.current_stock == 0
        assert expense.quantity == 2

    def test_remove_from_empty_records_nothing(self, ledger):
        product = ledger.add_product(make_product(stock=0))
        before = list(ledger.expenses)
        assert ledger.remove_stock(product, 3) is None
        assert ledger.expenses == before

    def test_add_records_purchase(self, ledger, store):
        product = ledger.add_product(make_product(stock=2))
        expense = ledger.add_stock(product, 4)

        assert product.current_stock == 6
        assert expense.category == "Stock Purchase"
        assert expense.quantity == 4
        assert Ledger(store).products[0].current_stock == 6

    def test_zero_quantity_records_nothing(self, ledger):
        product = ledger.add_product(make_product(stock=5))
        assert ledger.add_stock(product, 0) is None
        assert ledger.remove_stock(product, 0) is None
        assert len(ledger.expenses) == 1

    def test_negative_quantity_rejected(self, ledger):
        product = ledger.add_product(make_product(stock=5))
        with pytest.raises(ValidationError):
            ledger.add_stock(product, -1)
        with pytest.raises(ValidationError):
            ledger.remove_stock(product, -1)
        assert product.current_stock == 5


class TestPersistenceFailure:
    def test_failed_write_leaves_state_unchanged(self, ledger, store, monkeypatch):
        product = ledger.add_product(make_product(stock=5))
        expenses_before = list(ledger.expenses)
        events = []
        ledger.subscribe(events.append)

        def fail(expense):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store, "insert_expense", fail)

        with pytest.raises(PersistenceError):
            ledger.adjust_stock(product, 1)

        assert product.current_stock == 5
        assert ledger.expenses == expenses_before
        assert events == []

        monkeypatch.undo()
        reloaded = Ledger(store)
        assert reloaded.products[0].current_stock == 5
        assert len(reloaded.expenses) == 1

    def test_failed_new_product_not_added(self, ledger, store, monkeypatch):
        def fail(expense):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(store, "insert_expense", fail)

        with pytest.raises(PersistenceError):
            ledger.add_product(make_product(stock=5))

        assert ledger.products == []
        monkeypatch.undo()
        assert store.load_products() == []


class TestUpdateAndDelete:
    def test_update_fields(self, ledger, store):
        product = ledger.add_product(make_product())
        ledger.update_product(product, supplier="CosmoProf", min_stock=4)

        assert product.supplier == "CosmoProf"
        assert product.min_stock == 4
        assert Ledger(store).products[0].supplier == "CosmoProf"

    def test_update_does_not_record_expense(self, ledger):
        product = ledger.add_product(make_product())
        count = len(ledger.expenses)
        ledger.update_product(product, cost_per_unit=9.0)
        assert len(ledger.expenses) == count

    def test_stock_not_editable(self, ledger):
        product = ledger.add_product(make_product())
        with pytest.raises(ValidationError):
            ledger.update_product(product, current_stock=99)

    def test_rename_clash_rejected(self, ledger):
        ledger.add_product(make_product(name="Toner"))
        other = ledger.add_product(make_product(name="Bleach"))
        with pytest.raises(ValidationError):
            ledger.update_product(other, name="toner")

    def test_empty_name_rejected(self, ledger):
        product = ledger.add_product(make_product())
        with pytest.raises(ValidationError, match="must not be empty"):
            ledger.update_product(product, name="   ")
        assert product.name == "Purple Shampoo"

    def test_unknown_category_rejected(self, store, tmp_path):
        prefs = PreferencesDB(tmp_path / "test.db")
        try:
            ledger = Ledger(store, categories=CategoryRegistry(prefs))
            product = ledger.add_product(make_product())
            with pytest.raises(ValidationError, match="Unknown category"):
                ledger.update_product(product, category="Groceries")
            assert product.category == "Wash House"
            assert Ledger(store).products[0].category == "Wash House"

            ledger.update_product(product, category="Color Supplies")
            assert product.category == "Color Supplies"
        finally:
            prefs.close()

    def test_delete_keeps_expenses(self, ledger, store):
        product = ledger.add_product(make_product(stock=5))
        ledger.delete_product(product)

        assert ledger.products == []
        assert len(ledger.expenses) == 1
        assert ledger.product_expenses("Purple Shampoo") == ledger.expenses
        reloaded = Ledger(store)
        assert reloaded.products == []
        assert len(reloaded.expenses) == 1


class TestLookup:
    def test_find_product_case_insensitive(self, ledger):
        product = ledger.add_product(make_product(name="Bond Builder"))
        assert ledger.find_product("BOND builder") is product
        assert ledger.find_product("nothing") is None

    def test_search(self, ledger):
        ledger.add_product(make_product(name="Bond Builder", sku="BB-1"))
        ledger.add_product(make_product(name="Foil Roll", category="Color Supplies"))
        assert [p.name for p in ledger.search_products("bb-")] == ["Bond Builder"]
        assert [p.name for p in ledger.search_products("color")] == ["Foil Roll"]
        assert len(ledger.search_products("")) == 2


class TestReceipts:
    def test_add_parsed_receipt(self, ledger):
        items = [make_item(), make_item("Conditioner", 1, 8.5)]
        receipt = ledger.add_parsed_receipt("Acme Salon Supply", 22.99, "downtown", items)

        assert ledger.receipts == [receipt]
        assert receipt.items == 2
        assert ledger.receipt_items == items
        assert len(ledger.expenses) == 1
        expense = ledger.expenses[0]
        assert expense.category == "Supplies"
        assert expense.amount == 22.99
        assert expense.quantity == 2
        assert expense.product_name is None
        assert expense.notes == "Receipt from Acme Salon Supply"

    def test_receipt_does_not_touch_stock(self, ledger):
        product = ledger.add_product(make_product(name="Shampoo", stock=1))
        ledger.add_parsed_receipt("Acme", 25.98, "downtown", [make_item()])
        assert product.current_stock == 1

    def test_receipt_expense_is_not_toasted(self, ledger):
        ledger.add_parsed_receipt("Acme", 5.0, "downtown", [])
        assert ledger.last_created_expense is None

    def test_add_receipt_without_items(self, ledger, store):
        receipt = ledger.add_parsed_receipt("Acme", 5.0, "downtown", [])
        Ledger(store)  # loads without error
        assert ledger.receipts == [receipt]

    def test_receipts_persisted(self, ledger, store):
        ledger.add_parsed_receipt(
            "Acme", 25.98, "westside", [make_item()], ocr_text="Acme\n25.98"
        )
        reloaded = Ledger(store)
        assert len(reloaded.receipts) == 1
        assert reloaded.receipts[0].ocr_text == "Acme\n25.98"
        assert len(reloaded.receipt_items) == 1
        assert reloaded.expenses[0].location == "westside"


class TestEvents:
    def test_subscribers_notified(self, ledger):
        events = []
        ledger.subscribe(events.append)
        ledger.add_product(make_product(stock=2))

        kinds = [e.kind for e in events]
        assert kinds == ["products", "expenses", "last_created_expense"]

    def test_unsubscribe(self, ledger):
        events = []
        unsubscribe = ledger.subscribe(events.append)
        unsubscribe()
        ledger.add_product(make_product())
        assert events == []

    def test_failing_subscriber_does_not_break_mutation(self, ledger):
        def broken(event):
            raise RuntimeError("listener bug")

        ledger.subscribe(broken)
        product = ledger.add_product(make_product(stock=3))
        assert ledger.products == [product]

    def test_dismiss_expense_toast(self, ledger):
        product = ledger.add_product(make_product(stock=3))
        first = ledger.last_created_expense
        ledger.adjust_stock(product, 1)
        second = ledger.last_created_expense

        assert ledger.dismiss_expense_toast(first.id) is False
        assert ledger.last_created_expense == second
        assert ledger.dismiss_expense_toast(second.id) is True
        assert ledger.last_created_expense is None

    def test_loaded_expenses_are_not_toasted(self, ledger, store):
        ledger.add_product(make_product(stock=3))
        assert Ledger(store).last_created_expense is None


class TestLocations:
    def test_defaults(self, ledger):
        assert ledger.locations == ["downtown", "midtown", "westside"]
        assert ledger.current_location == "downtown"

    def test_add_and_remove(self, ledger):
        assert ledger.add_location("uptown") is True
        assert ledger.add_location("uptown") is False
        assert ledger.add_location("  ") is False
        assert "uptown" in ledger.locations

        ledger.set_current_location("uptown")
        assert ledger.remove_location("uptown") is True
        assert ledger.current_location == "downtown"
        assert ledger.remove_location("uptown") is False

    def test_unknown_current_location(self, ledger):
        with pytest.raises(ValidationError):
            ledger.set_current_location("nowhere")

    def test_persisted_in_preferences(self, store, tmp_path):
        prefs = PreferencesDB(tmp_path / "test.db")
        try:
            ledger = Ledger(store, preferences=prefs)
            ledger.add_location("uptown")
            ledger.set_current_location("uptown")

            assert prefs.get(LOCATIONS_KEY) == ["downtown", "midtown", "westside", "uptown"]
            assert prefs.get(CURRENT_LOCATION_KEY) == "uptown"
            assert Ledger(store, preferences=prefs).current_location == "uptown"
        finally:
            prefs.close()


class TestLowStockAlerts:
    def test_notifier_called_when_low(self, store):
        alerts = []
        ledger = Ledger(store, notifier=alerts.append)
        product = ledger.add_product(make_product(stock=10))
        assert alerts == []

        ledger.adjust_stock(product, 2)
        assert len(alerts) == 1
        assert alerts[0].title == "Low Stock Alert"
        assert alerts[0].body == "Purple Shampoo is down to 2 units."
        assert alerts[0].identifier.startswith(f"low-stock-{product.id}-")

    def test_failing_notifier_is_logged(self, store):
        def broken(alert):
            raise RuntimeError("no permission")

        ledger = Ledger(store, notifier=broken)
        product = ledger.add_product(make_product(stock=1))
        assert product.current_stock == 1
