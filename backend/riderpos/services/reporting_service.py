# Overview: Sales report aggregation over committed transactions.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from sqlalchemy import or_
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import Profile, Transaction, ROLE_RIDER
from riderpos.time_utils import normalize_utc, parse_iso_datetime, to_utc_z
"""
Report semantics:

- summarize/product_breakdown/filter_* are pure; they never touch the DB.
- Date ranges are inclusive on both ends: start <= created_at <= end.
- Malformed rows are not errors. A transaction without items, or an item
  without a product reference, simply contributes nothing to the product
  ranking (its final_amount still counts toward the totals).
- Product ranking is by quantity descending; ties keep the order in which
  products were first encountered.
"""

TOP_PRODUCTS_LIMIT = 5


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


@dataclass(frozen=True)
class ProductRef:
    id: int
    name: str
    sku: str


@dataclass(frozen=True)
class ReportItem:
    quantity: int
    subtotal: int
    product: ProductRef | None = None


@dataclass(frozen=True)
class ReportTransaction:
    id: int | None
    transaction_number: str | None
    rider_id: int | None
    created_at: datetime | None
    final_amount: int
    total_amount: int = 0
    tax_amount: int = 0
    payment_method: str | None = None
    rider_name: str | None = None
    items: tuple[ReportItem, ...] = ()

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @classmethod
    def from_model(cls, tx: Transaction) -> "ReportTransaction":
        return cls(
            id=tx.id,
            transaction_number=tx.transaction_number,
            rider_id=tx.rider_id,
            created_at=tx.created_at,
            final_amount=tx.final_amount,
            total_amount=tx.total_amount,
            tax_amount=tx.tax_amount,
            payment_method=tx.payment_method,
            rider_name=tx.rider.full_name if tx.rider else None,
            items=tuple(
                ReportItem(
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                    product=ProductRef(id=item.product_id, name=item.product_name, sku=item.product_sku),
                )
                for item in tx.items
            ),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "created_at": to_utc_z(self.created_at),
            "rider_id": self.rider_id,
            "rider_name": self.rider_name,
            "item_count": self.item_count,
            "payment_method": self.payment_method,
            "total_amount": self.total_amount,
            "tax_amount": self.tax_amount,
            "final_amount": self.final_amount,
        }


@dataclass
class ProductSales:
    product_id: int
    name: str
    sku: str
    quantity: int = 0
    total_amount: int = 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "total_amount": self.total_amount,
        }


@dataclass(frozen=True)
class SalesSummary:
    total_amount: int
    total_transaction_count: int
    average_amount: int
    top_selling_products: list[ProductSales] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_amount": self.total_amount,
            "total_transaction_count": self.total_transaction_count,
            "average_amount": self.average_amount,
            "top_selling_products": [p.to_dict() for p in self.top_selling_products],
        }


# Ingestion boundary

def _to_amount(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return 0
    if not amount.is_finite():
        return 0
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return normalize_utc(value)
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            return None
    return None


def _parse_product(raw: Mapping[str, Any]) -> ProductRef | None:
    # Nested shape: {"products": {"id", "name", "sku"}}; flat shape: product_id/product_name/product_sku
    nested = raw.get("products") or raw.get("product")
    if isinstance(nested, Mapping) and nested.get("id") is not None:
        return ProductRef(id=nested["id"], name=nested.get("name") or "", sku=nested.get("sku") or "")
    if raw.get("product_id") is not None:
        return ProductRef(
            id=raw["product_id"],
            name=raw.get("product_name") or "",
            sku=raw.get("product_sku") or "",
        )
    return None


def parse_transaction(raw: Mapping[str, Any]) -> ReportTransaction:
    """
    Build a typed transaction from a loosely shaped mapping.

    Accepts either "items" or "transaction_items" for the nested lines and
    either a nested "products" object or flat product_* fields per item.
    """
    raw_items = raw.get("items")
    if raw_items is None:
        raw_items = raw.get("transaction_items")
    items = []
    for raw_item in raw_items or ():
        if not isinstance(raw_item, Mapping):
            continue
        items.append(ReportItem(
            quantity=_to_amount(raw_item.get("quantity")),
            subtotal=_to_amount(raw_item.get("subtotal")),
            product=_parse_product(raw_item),
        ))

    rider = raw.get("profiles") or raw.get("rider")
    rider_name = raw.get("rider_name")
    if rider_name is None and isinstance(rider, Mapping):
        rider_name = rider.get("full_name")

    return ReportTransaction(
        id=raw.get("id"),
        transaction_number=raw.get("transaction_number"),
        rider_id=raw.get("rider_id"),
        created_at=_to_datetime(raw.get("created_at")),
        final_amount=_to_amount(raw.get("final_amount")),
        total_amount=_to_amount(raw.get("total_amount")),
        tax_amount=_to_amount(raw.get("tax_amount")),
        payment_method=raw.get("payment_method"),
        rider_name=rider_name,
        items=tuple(items),
    )


# Pure aggregation

def _product_totals(transactions: Iterable[ReportTransaction]) -> list[ProductSales]:
    by_product: dict[int, ProductSales] = {}
    for tx in transactions:
        for item in tx.items:
            if item.product is None:
                continue
            entry = by_product.get(item.product.id)
            if entry is None:
                entry = ProductSales(product_id=item.product.id, name=item.product.name, sku=item.product.sku)
                by_product[item.product.id] = entry
            entry.quantity += item.quantity
            entry.total_amount += item.subtotal
    # sorted() is stable, so equal quantities keep first-encountered order
    return sorted(by_product.values(), key=lambda p: p.quantity, reverse=True)


def product_breakdown(transactions: Iterable[ReportTransaction]) -> list[ProductSales]:
    """Every product sold, ranked by quantity."""
    return _product_totals(transactions)


def summarize(transactions: Iterable[ReportTransaction]) -> SalesSummary:
    transactions = list(transactions)
    total_amount = sum(tx.final_amount for tx in transactions)
    count = len(transactions)
    if count:
        average = (Decimal(total_amount) / count).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    else:
        average = Decimal(0)

    return SalesSummary(
        total_amount=total_amount,
        total_transaction_count=count,
        average_amount=int(average),
        top_selling_products=_product_totals(transactions)[:TOP_PRODUCTS_LIMIT],
    )


def filter_by_date_range(
    transactions: Iterable[ReportTransaction],
    start: datetime | None,
    end: datetime | None,
) -> list[ReportTransaction]:
    """Inclusive on both ends; None leaves that side open. Undated rows are dropped."""
    start = normalize_utc(start) if start else None
    end = normalize_utc(end) if end else None
    result = []
    for tx in transactions:
        if tx.created_at is None:
            continue
        if start is not None and tx.created_at < start:
            continue
        if end is not None and tx.created_at > end:
            continue
        result.append(tx)
    return result


def filter_by_rider(
    transactions: Iterable[ReportTransaction],
    rider_id: int | None,
) -> list[ReportTransaction]:
    if rider_id is None:
        return list(transactions)
    return [tx for tx in transactions if tx.rider_id == rider_id]


# DB-backed

def fetch_transactions(
    start: datetime,
    end: datetime,
    rider_id: int | None = None,
) -> list[ReportTransaction]:
    """Committed transactions in [start, end], newest first, with items."""
    query = (
        db.session.query(Transaction)
        .options(selectinload(Transaction.items), joinedload(Transaction.rider))
        .filter(Transaction.created_at >= start, Transaction.created_at <= end)
    )
    if rider_id is not None:
        query = query.filter(Transaction.rider_id == rider_id)

    rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()
    return [ReportTransaction.from_model(tx) for tx in rows]


def list_riders() -> list[Profile]:
    """Confirmed riders plus new users without a role yet."""
    return (
        db.session.query(Profile)
        .filter(or_(Profile.role == ROLE_RIDER, Profile.role.is_(None)))
        .order_by(Profile.full_name.asc(), Profile.id.asc())
        .all()
    )


def _is_date_only(value: str) -> bool:
    return len(value.strip()) == 10


def _parse_range(start: str | None, end: str | None) -> tuple[datetime, datetime]:
    """
    Inclusive [start, end] from ISO-8601 strings.

    A date-only end ("2026-01-31") covers that whole day.
    """
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
        if end_dt is not None and _is_date_only(end):
            end_dt = end_dt + timedelta(days=1) - timedelta(microseconds=1)
    except ValueError:
        raise ReportError("start and end must be ISO-8601 datetimes")
    if start_dt is None or end_dt is None:
        raise ReportError("start and end are required")
    if start_dt > end_dt:
        raise ReportError("start must not be after end")
    return start_dt, end_dt


def sales_report(
    *,
    start: str | None,
    end: str | None,
    rider_id: int | None = None,
) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    rider = None
    if rider_id is not None:
        rider = db.session.get(Profile, rider_id)
        if rider is None:
            raise ReportError("Rider not found")

    transactions = fetch_transactions(start_dt, end_dt, rider_id=rider_id)
    summary = summarize(transactions)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "rider": {"id": rider.id, "full_name": rider.full_name} if rider else None,
        "summary": summary.to_dict(),
        "products": [p.to_dict() for p in product_breakdown(transactions)],
        "transactions": [tx.to_row() for tx in transactions],
    }
