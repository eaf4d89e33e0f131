"""
Sales report aggregation tests.

The pure helpers are exercised with hand-built rows; the DB-backed
functions with sales committed through the checkout service.
"""

from datetime import datetime, timedelta

import pytest

from riderpos.models import Profile
from riderpos.services import cart_service, checkout_service, reporting_service
from riderpos.services.reporting_service import (
    ProductRef,
    ReportItem,
    ReportTransaction,
    parse_transaction,
    summarize,
)
from riderpos.time_utils import to_utc_z, utcnow


def _tx(final_amount, items=(), *, rider_id=1, created_at=None, tx_id=None):
    return ReportTransaction(
        id=tx_id,
        transaction_number=None,
        rider_id=rider_id,
        created_at=created_at or datetime(2026, 1, 15, 12, 0),
        final_amount=final_amount,
        items=tuple(
            ReportItem(quantity=qty, subtotal=subtotal, product=ProductRef(id=pid, name=f"P{pid}", sku=f"S{pid}"))
            for pid, qty, subtotal in items
        ),
    )


class TestSummarize:

    def test_empty(self):
        summary = summarize([])
        assert summary.total_amount == 0
        assert summary.total_transaction_count == 0
        assert summary.average_amount == 0
        assert summary.top_selling_products == []

    def test_totals_and_ranking(self):
        summary = summarize([
            _tx(3300, [(1, 3, 3000)]),
            _tx(1100, [(1, 1, 1000)]),
            _tx(5500, [(2, 2, 5000)]),
        ])

        assert summary.total_amount == 9900
        assert summary.total_transaction_count == 3
        assert summary.average_amount == 3300
        assert [(p.product_id, p.quantity, p.total_amount) for p in summary.top_selling_products] == [
            (1, 4, 4000),
            (2, 2, 5000),
        ]

    def test_average_rounds_half_up(self):
        assert summarize([_tx(1), _tx(2)]).average_amount == 2
        assert summarize([_tx(1), _tx(1), _tx(2)]).average_amount == 1

    def test_top_five_with_stable_ties(self):
        # Seven products, all with quantity 1, encountered in id order
        transactions = [_tx(100, [(pid, 1, 100)]) for pid in range(1, 8)]
        top = summarize(transactions).top_selling_products
        assert [p.product_id for p in top] == [1, 2, 3, 4, 5]

    def test_ties_keep_first_encountered_order(self):
        summary = summarize([
            _tx(100, [(9, 2, 200), (3, 1, 100)]),
            _tx(100, [(3, 1, 100), (4, 2, 200)]),
        ])
        assert [p.product_id for p in summary.top_selling_products] == [9, 3, 4]

    def test_items_without_product_only_count_toward_totals(self):
        tx = ReportTransaction(
            id=1,
            transaction_number=None,
            rider_id=1,
            created_at=datetime(2026, 1, 1),
            final_amount=500,
            items=(ReportItem(quantity=5, subtotal=500, product=None),),
        )
        summary = summarize([tx])
        assert summary.total_amount == 500
        assert summary.top_selling_products == []

    def test_product_breakdown_is_not_truncated(self):
        transactions = [_tx(100, [(pid, pid, 100)]) for pid in range(1, 8)]
        breakdown = reporting_service.product_breakdown(transactions)
        assert [p.product_id for p in breakdown] == [7, 6, 5, 4, 3, 2, 1]


class TestParseTransaction:

    def test_nested_shape(self):
        tx = parse_transaction({
            "id": 1,
            "rider_id": 2,
            "created_at": "2026-01-15T10:00:00Z",
            "final_amount": 3300,
            "profiles": {"full_name": "Rider One"},
            "transaction_items": [
                {"quantity": 3, "subtotal": 3000, "products": {"id": 7, "name": "Kopi", "sku": "K1"}},
            ],
        })
        assert tx.created_at == datetime(2026, 1, 15, 10, 0)
        assert tx.rider_name == "Rider One"
        assert tx.items[0].product == ProductRef(id=7, name="Kopi", sku="K1")
        assert tx.item_count == 3

    def test_flat_item_shape(self):
        tx = parse_transaction({
            "final_amount": "1100",
            "items": [{"quantity": "1", "subtotal": 1000, "product_id": 4, "product_name": "Teh"}],
        })
        assert tx.final_amount == 1100
        assert tx.items[0].product.id == 4
        assert tx.items[0].product.sku == ""

    def test_malformed_rows_contribute_zero(self):
        tx = parse_transaction({
            "final_amount": "not-a-number",
            "created_at": "yesterday",
            "items": [
                "garbage",
                {"quantity": None, "subtotal": "x", "products": {"id": 1}},
                {"quantity": 2, "subtotal": 200},
            ],
        })
        assert tx.final_amount == 0
        assert tx.created_at is None
        assert len(tx.items) == 2
        assert tx.items[0].quantity == 0
        assert tx.items[1].product is None

        summary = summarize([tx])
        assert summary.total_amount == 0
        assert summary.total_transaction_count == 1
        assert [(p.product_id, p.quantity) for p in summary.top_selling_products] == [(1, 0)]

    def test_missing_items(self):
        tx = parse_transaction({"final_amount": 100, "items": None})
        assert tx.items == ()
        assert summarize([tx]).top_selling_products == []


class TestFilters:

    def test_date_range_is_inclusive(self):
        start = datetime(2026, 1, 1)
        end = datetime(2026, 1, 31, 23, 59, 59)
        rows = [
            _tx(1, created_at=start, tx_id=1),
            _tx(1, created_at=end, tx_id=2),
            _tx(1, created_at=start - timedelta(seconds=1), tx_id=3),
            _tx(1, created_at=end + timedelta(seconds=1), tx_id=4),
        ]
        assert [tx.id for tx in reporting_service.filter_by_date_range(rows, start, end)] == [1, 2]

    def test_open_ended_range(self):
        rows = [_tx(1, created_at=datetime(2020, 1, 1), tx_id=1), _tx(1, created_at=datetime(2030, 1, 1), tx_id=2)]
        assert len(reporting_service.filter_by_date_range(rows, None, None)) == 2
        assert [tx.id for tx in reporting_service.filter_by_date_range(rows, datetime(2025, 1, 1), None)] == [2]

    def test_undated_rows_dropped(self):
        rows = [parse_transaction({"final_amount": 1})]
        assert reporting_service.filter_by_date_range(rows, None, None) == []

    def test_by_rider(self):
        rows = [_tx(1, rider_id=1, tx_id=1), _tx(1, rider_id=2, tx_id=2)]
        assert [tx.id for tx in reporting_service.filter_by_rider(rows, 2)] == [2]
        assert len(reporting_service.filter_by_rider(rows, None)) == 2


def _sell(rider, product, quantity):
    cart = cart_service.build_cart(rider.id, [(product.id, quantity)])
    return checkout_service.checkout(cart, "CASH")


class TestSalesReport:

    def test_report_for_committed_sales(self, db_session, rider, other_rider, product_a, product_b, give_stock):
        give_stock(rider, product_a, 10)
        give_stock(other_rider, product_b, 10)
        _sell(rider, product_a, 3)
        _sell(other_rider, product_b, 1)
        _sell(rider, product_a, 1)

        now = utcnow()
        report = reporting_service.sales_report(
            start=to_utc_z(now - timedelta(hours=1)),
            end=to_utc_z(now + timedelta(hours=1)),
        )

        summary = report["summary"]
        assert summary["total_amount"] == 3000 + 2500 + 1000
        assert summary["total_transaction_count"] == 3
        assert summary["average_amount"] == 2167
        assert [p["sku"] for p in summary["top_selling_products"]] == ["A", "B"]
        assert summary["top_selling_products"][0]["quantity"] == 4
        assert len(report["transactions"]) == 3
        assert report["rider"] is None

    def test_rider_filter(self, db_session, rider, other_rider, product_a, give_stock):
        give_stock(rider, product_a, 5)
        give_stock(other_rider, product_a, 5)
        _sell(rider, product_a, 2)
        _sell(other_rider, product_a, 1)

        now = utcnow()
        report = reporting_service.sales_report(
            start=to_utc_z(now - timedelta(hours=1)),
            end=to_utc_z(now + timedelta(hours=1)),
            rider_id=rider.id,
        )
        assert report["rider"] == {"id": rider.id, "full_name": "Rider One"}
        assert report["summary"]["total_transaction_count"] == 1
        row = report["transactions"][0]
        assert row["rider_name"] == "Rider One"
        assert row["item_count"] == 2

    def test_out_of_range_sales_excluded(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 5)
        _sell(rider, product_a, 1)

        transactions = reporting_service.fetch_transactions(datetime(2000, 1, 1), datetime(2000, 12, 31))
        assert transactions == []

    def test_newest_first(self, db_session, rider, product_a, give_stock):
        give_stock(rider, product_a, 5)
        first = _sell(rider, product_a, 1)
        second = _sell(rider, product_a, 1)

        now = utcnow()
        rows = reporting_service.fetch_transactions(now - timedelta(hours=1), now + timedelta(hours=1))
        assert [tx.id for tx in rows] == [second.id, first.id]

    @pytest.mark.parametrize("start,end", [
        (None, "2026-01-31T00:00:00Z"),
        ("2026-01-01T00:00:00Z", None),
        ("not-a-date", "2026-01-31T00:00:00Z"),
        ("2026-02-01T00:00:00Z", "2026-01-01T00:00:00Z"),
    ])
    def test_invalid_range(self, db_session, start, end):
        with pytest.raises(reporting_service.ReportError):
            reporting_service.sales_report(start=start, end=end)

    def test_unknown_rider(self, db_session):
        with pytest.raises(reporting_service.ReportError):
            reporting_service.sales_report(
                start="2026-01-01T00:00:00Z",
                end="2026-01-31T00:00:00Z",
                rider_id=9999,
            )


class TestListRiders:

    def test_includes_riders_without_role(self, db_session, admin, rider):
        newcomer = Profile(email="new@test.local", full_name="Anna", role=None)
        db_session.add(newcomer)
        db_session.commit()

        names = [p.full_name for p in reporting_service.list_riders()]
        assert names == ["Anna", "Rider One"]
