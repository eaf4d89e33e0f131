"""
Checkout commit tests.

Verifies:
- A committed sale writes header, items and inventory decrements together
- Stock is re-checked at commit time
- Any failure rolls back every write and leaves the cart as it was
- Transaction numbers stay unique
"""

import re
from decimal import Decimal

import pytest
from sqlalchemy.exc import DatabaseError

from riderpos.errors import CommitFailed, DuplicateTransactionNumber, EmptyCart, InsufficientStock
from riderpos.models import LedgerEvent, Transaction, TransactionItem
from riderpos.services import cart_service, checkout_service, inventory_service, tax_service
from riderpos.services.cart_service import CartLine
from riderpos.services.tax_service import TaxPolicySnapshot
from riderpos.time_utils import utcnow


class TestCommitScenario:

    def test_sale_with_tax_decrements_inventory(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 5)
        tax_service.save_tax_policy(name="PPN", rate=10, is_active=True)

        cart = cart_service.open_cart(rider.id)
        cart.add_item(product_a.id, 3)
        transaction = checkout_service.checkout(cart, "CASH")

        assert transaction.total_amount == 3000
        assert transaction.tax_amount == 300
        assert transaction.final_amount == 3300
        assert transaction.tax_name == "PPN"
        assert transaction.tax_rate_bps == 1000
        assert inventory_service.get_quantity_on_hand(rider.id, product_a.id) == 2
        assert cart.is_empty

    def test_items_snapshot_product_fields(self, db_session, rider, product_a, product_b, give_stock):
        give_stock(rider, product_a, 5)
        give_stock(rider, product_b, 5)

        cart = cart_service.build_cart(rider.id, [(product_a.id, 2), (product_b.id, 1)])
        transaction = checkout_service.checkout(cart, "QRIS")

        # Later catalog edits must not rewrite history
        product_a.name = "Renamed"
        product_a.price = 9999
        db_session.commit()

        items = db_session.query(TransactionItem).filter_by(transaction_id=transaction.id).order_by(TransactionItem.id).all()
        assert [(i.product_sku, i.product_name, i.price_at_time, i.quantity, i.subtotal) for i in items] == [
            ("A", "Product A", 1000, 2, 2000),
            ("B", "Product B", 2500, 1, 2500),
        ]
        assert transaction.total_amount == 4500
        assert transaction.tax_amount == 0

    def test_no_active_policy_means_no_tax(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 1)
        tax_service.save_tax_policy(name="PPN", rate=10, is_active=False)

        cart = cart_service.build_cart(rider.id, [(product_a.id, 1)])
        transaction = checkout_service.checkout(cart, "CASH")

        assert transaction.tax_amount == 0
        assert transaction.final_amount == 1000
        assert transaction.tax_name is None

    def test_writes_ledger_events(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 2)
        cart = cart_service.build_cart(rider.id, [(product_a.id, 2)])
        transaction = checkout_service.checkout(cart, "CASH")

        events = db_session.query(LedgerEvent).filter_by(transaction_id=transaction.id).all()
        assert sorted(e.event_type for e in events) == ["inventory.sold", "transaction.created"]

    def test_transaction_number_format_and_uniqueness(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 3)
        numbers = []
        for _ in range(3):
            cart = cart_service.build_cart(rider.id, [(product_a.id, 1)])
            numbers.append(checkout_service.checkout(cart, "CASH").transaction_number)

        assert len(set(numbers)) == 3
        today = utcnow().strftime("%Y%m%d")
        for number in numbers:
            assert re.fullmatch(rf"TRX-{today}-\d{{6}}", number)


class TestCommitValidation:

    def test_empty_cart(self, db_session, rider):
        with pytest.raises(EmptyCart):
            checkout_service.commit_transaction(rider_id=rider.id, lines=[], payment_method="CASH")

    def test_stock_rechecked_at_commit(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 3)
        cart = cart_service.build_cart(rider.id, [(product_a.id, 3)])

        # Another session sells one unit after the cart was built
        inventory_service.adjust_rider_inventory(rider.id, product_a.id, -1)
        db_session.commit()

        with pytest.raises(InsufficientStock) as exc_info:
            checkout_service.checkout(cart, "CASH")

        assert exc_info.value.product_id == product_a.id
        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2
        assert db_session.query(Transaction).count() == 0
        assert len(cart.lines) == 1

    def test_duplicate_lines_are_aggregated_for_stock_check(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 3)
        lines = [
            CartLine(product_id=product_a.id, sku="A", name="Product A", unit_price=1000, quantity=2),
            CartLine(product_id=product_a.id, sku="A", name="Product A", unit_price=1000, quantity=2),
        ]
        with pytest.raises(InsufficientStock) as exc_info:
            checkout_service.commit_transaction(rider_id=rider.id, lines=lines, payment_method="CASH")
        assert exc_info.value.requested == 4
        assert inventory_service.get_quantity_on_hand(rider.id, product_a.id) == 3

    def test_policy_as_of_commit_time(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 5)
        tax_service.save_tax_policy(name="Old", rate=10, is_active=True)
        cart = cart_service.build_cart(rider.id, [(product_a.id, 2)])

        tax_service.save_tax_policy(name="New", rate=20, is_active=True)
        transaction = checkout_service.checkout(cart, "CASH")

        assert transaction.tax_amount == 400
        assert transaction.tax_name == "New"

    def test_explicit_policy_snapshot(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 1)
        transaction = checkout_service.commit_transaction(
            rider_id=rider.id,
            lines=cart_service.build_cart(rider.id, [(product_a.id, 1)]).lines,
            payment_method="CASH",
            tax_policy=TaxPolicySnapshot(name="Promo", rate=Decimal("5")),
        )
        assert transaction.tax_amount == 50
        assert transaction.tax_rate_bps == 500


class TestCommitAtomicity:

    def test_failure_rolls_back_everything(self, db_session, rider, product_a, give_stock, monkeypatch):
        give_stock(rider, product_a, 5)
        cart = cart_service.build_cart(rider.id, [(product_a.id, 3)])
        events_before = db_session.query(LedgerEvent).count()

        def _boom(**kwargs):
            raise DatabaseError("INSERT INTO ledger_events", {}, Exception("disk I/O error"))

        # Fails after header, items and decrement have been flushed
        monkeypatch.setattr(checkout_service, "append_ledger_event", _boom)

        with pytest.raises(CommitFailed) as exc_info:
            checkout_service.checkout(cart, "CASH")

        assert isinstance(exc_info.value.cause, DatabaseError)
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0
        assert db_session.query(LedgerEvent).count() == events_before
        assert inventory_service.get_quantity_on_hand(rider.id, product_a.id) == 5
        # Cart is untouched so the caller can retry
        assert [(l.product_id, l.quantity) for l in cart.lines] == [(product_a.id, 3)]

    def test_retry_after_failure_succeeds(self, db_session, rider, product_a, give_stock, monkeypatch):
        give_stock(rider, product_a, 5)
        cart = cart_service.build_cart(rider.id, [(product_a.id, 3)])
        original = checkout_service.append_ledger_event
        calls = {"n": 0}

        def _fail_once(**kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise DatabaseError("INSERT INTO ledger_events", {}, Exception("transient"))
            return original(**kwargs)

        monkeypatch.setattr(checkout_service, "append_ledger_event", _fail_once)

        with pytest.raises(CommitFailed):
            checkout_service.checkout(cart, "CASH")
        transaction = checkout_service.checkout(cart, "CASH")

        assert transaction.final_amount == 3000
        assert inventory_service.get_quantity_on_hand(rider.id, product_a.id) == 2


class TestTransactionNumbers:

    def test_taken_number_is_skipped(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 1)
        taken = f"TRX-{utcnow():%Y%m%d}-000001"
        db_session.add(Transaction(
            transaction_number=taken,
            rider_id=rider.id,
            total_amount=0,
            tax_amount=0,
            final_amount=0,
            payment_method="CASH",
        ))
        db_session.commit()

        cart = cart_service.build_cart(rider.id, [(product_a.id, 1)])
        transaction = checkout_service.checkout(cart, "CASH")

        assert transaction.transaction_number == f"TRX-{utcnow():%Y%m%d}-000002"

    def test_persistent_collision_fails_without_writes(self, db_session, rider, product_a, give_stock, monkeypatch):
        give_stock(rider, product_a, 1)
        db_session.add(Transaction(
            transaction_number="TRX-FIXED",
            rider_id=rider.id,
            total_amount=0,
            tax_amount=0,
            final_amount=0,
            payment_method="CASH",
        ))
        db_session.commit()
        monkeypatch.setattr(checkout_service, "next_document_number", lambda **kwargs: "TRX-FIXED")

        cart = cart_service.build_cart(rider.id, [(product_a.id, 1)])
        with pytest.raises(CommitFailed) as exc_info:
            checkout_service.checkout(cart, "CASH")

        assert isinstance(exc_info.value.cause, DuplicateTransactionNumber)
        assert db_session.query(Transaction).count() == 1
        assert inventory_service.get_quantity_on_hand(rider.id, product_a.id) == 1
        assert not cart.is_empty

    def test_run_of_taken_numbers_is_skipped(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 2)
        today = f"{utcnow():%Y%m%d}"
        for n in range(1, 7):
            db_session.add(Transaction(
                transaction_number=f"TRX-{today}-{n:06d}",
                rider_id=rider.id,
                total_amount=0,
                tax_amount=0,
                final_amount=0,
                payment_method="CASH",
            ))
        db_session.commit()

        first = checkout_service.checkout(cart_service.build_cart(rider.id, [(product_a.id, 1)]), "CASH")
        second = checkout_service.checkout(cart_service.build_cart(rider.id, [(product_a.id, 1)]), "CASH")

        assert first.transaction_number == f"TRX-{today}-000007"
        assert second.transaction_number == f"TRX-{today}-000008"
        assert inventory_service.get_quantity_on_hand(rider.id, product_a.id) == 0
