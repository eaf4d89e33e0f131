"""
Checkout service - atomic sale commit.

A sale is three kinds of writes (transaction header, line items and rider
inventory decrements). They land in one database transaction or not at all.

FLOW:
1. Reject empty carts.
2. Lock the rider's inventory rows (SQLite: BEGIN IMMEDIATE) and re-check
   stock against live quantities, not the cart's snapshot.
3. Price with the tax policy active at commit time.
4. Allocate a unique transaction number (collisions are retried).
5. Insert header + items, decrement inventory, append ledger events, commit.
"""

from __future__ import annotations

from typing import Sequence

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Product, RiderInventory, Transaction, TransactionItem
from ..errors import (
    CheckoutError,
    CommitFailed,
    DuplicateTransactionNumber,
    EmptyCart,
    InsufficientStock,
    NotFoundError,
)
from ..validation import ValidationError
from riderpos.time_utils import utcnow
from .cart_service import Cart, CartLine
from .concurrency import lock_for_update, run_with_retry
from .document_service import advance_document_sequence, next_document_number
from .inventory_service import require_rider, adjust_rider_inventory
from .ledger_service import append_ledger_event
from .tax_service import TaxPolicySnapshot, compute_totals, get_active_tax_policy

TRANSACTION_DOCUMENT_TYPE = "TRANSACTION"


def _aggregate_quantities(lines: Sequence[CartLine]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(f"quantity for product {line.product_id} must be >= 1")
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def _validate_stock(rider_id: int, requested: dict[int, int]) -> dict[int, Product]:
    rows = lock_for_update(
        db.session.query(RiderInventory).filter(
            RiderInventory.rider_id == rider_id,
            RiderInventory.product_id.in_(list(requested)),
        )
    ).all()
    on_hand = {row.product_id: row.quantity for row in rows}

    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(list(requested))).all()
    }

    for product_id, qty in requested.items():
        product = products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        available = on_hand.get(product_id, 0)
        if available < qty:
            raise InsufficientStock(product_id, qty, available, product_name=product.name)
    return products


def _is_number_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "uq_transactions_number" in message or "transactions.transaction_number" in message


def _highest_taken_suffix(number: str) -> int | None:
    """Largest numeric suffix among stored numbers sharing `number`'s prefix and date."""
    head, _, tail = number.rpartition("-")
    if not head or not tail.isdigit():
        return None
    rows = (
        db.session.query(Transaction.transaction_number)
        .filter(Transaction.transaction_number.like(f"{head}-%"))
        .all()
    )
    suffixes = []
    for (stored,) in rows:
        stored_head, _, stored_tail = stored.rpartition("-")
        if stored_head == head and stored_tail.isdigit():
            suffixes.append(int(stored_tail))
    return max(suffixes, default=None)


def _next_transaction_number(max_skips: int = 5) -> str:
    """
    Allocate a number no committed transaction uses yet.

    When the drawn number is taken (rows written under an older numbering
    scheme or outside this service), the sequence jumps past the highest
    taken number for that prefix and date before drawing again. The jump
    happens in the sale's transaction, so it is kept when the sale commits.
    """
    prefix = current_app.config.get("TRANSACTION_NUMBER_PREFIX", "TRX")
    for _ in range(max_skips):
        number = next_document_number(document_type=TRANSACTION_DOCUMENT_TYPE, prefix=prefix)
        taken = (
            db.session.query(Transaction.id)
            .filter_by(transaction_number=number)
            .first()
        )
        if taken is None:
            return number
        highest = _highest_taken_suffix(number)
        if highest is not None:
            advance_document_sequence(document_type=TRANSACTION_DOCUMENT_TYPE, past=highest)
    raise DuplicateTransactionNumber(number)


def commit_transaction(
    *,
    rider_id: int,
    lines: Sequence[CartLine],
    payment_method: str,
    tax_policy: TaxPolicySnapshot | None = None,
) -> Transaction:
    """
    Persist a completed sale and decrement the rider's stock atomically.

    tax_policy overrides the policy lookup; by default the policy active at
    commit time is used. Raises EmptyCart, InsufficientStock or
    NotFoundError for business rule failures and CommitFailed when the
    database write itself fails. Nothing is written in any failure case.
    """
    lines = list(lines)
    if not lines:
        raise EmptyCart()

    requested = _aggregate_quantities(lines)

    def _op():
        if db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))

        require_rider(rider_id)
        products = _validate_stock(rider_id, requested)

        policy = tax_policy if tax_policy is not None else get_active_tax_policy()
        totals = compute_totals(sum(line.subtotal for line in lines), policy)
        applied = policy if policy is not None and policy.active else None

        number = _next_transaction_number()
        now = utcnow()

        transaction = Transaction(
            transaction_number=number,
            rider_id=rider_id,
            total_amount=totals.total_amount,
            tax_amount=totals.tax_amount,
            final_amount=totals.final_amount,
            tax_name=applied.name if applied else None,
            tax_rate_bps=applied.rate_bps if applied else None,
            payment_method=payment_method,
            created_at=now,
        )
        db.session.add(transaction)
        try:
            db.session.flush()
        except IntegrityError as exc:
            if _is_number_collision(exc):
                raise DuplicateTransactionNumber(number) from exc
            raise

        for line in lines:
            product = products[line.product_id]
            db.session.add(TransactionItem(
                transaction_id=transaction.id,
                product_id=line.product_id,
                product_name=product.name,
                product_sku=product.sku,
                price_at_time=line.unit_price,
                quantity=line.quantity,
                subtotal=line.subtotal,
            ))
        db.session.flush()

        for product_id, qty in requested.items():
            adjust_rider_inventory(rider_id, product_id, -qty)
            append_ledger_event(
                event_type="inventory.sold",
                entity_type="rider_inventory",
                entity_id=product_id,
                rider_id=rider_id,
                transaction_id=transaction.id,
                occurred_at=now,
                note=f"Sale {number}",
                payload=f"product_id={product_id},quantity={qty}",
            )

        append_ledger_event(
            event_type="transaction.created",
            entity_type="transaction",
            entity_id=transaction.id,
            rider_id=rider_id,
            transaction_id=transaction.id,
            occurred_at=now,
            note=f"Sale {number} committed",
            payload=f"final_amount={totals.final_amount},payment_method={payment_method}",
        )

        db.session.commit()
        return transaction

    try:
        transaction = run_with_retry(
            _op,
            attempts=current_app.config.get("COMMIT_RETRY_ATTEMPTS", 3),
            retry_on=(DuplicateTransactionNumber,),
        )
    except DuplicateTransactionNumber as exc:
        raise CommitFailed(exc) from exc
    except (CheckoutError, ValidationError):
        raise
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to commit transaction for rider %s", rider_id)
        raise CommitFailed(exc) from exc

    current_app.logger.info(
        "Committed transaction %s for rider %s (final_amount=%s)",
        transaction.transaction_number,
        rider_id,
        transaction.final_amount,
    )
    return transaction


def checkout(
    cart: Cart,
    payment_method: str,
    *,
    tax_policy: TaxPolicySnapshot | None = None,
) -> Transaction:
    """Commit a cart; the cart is cleared only when the commit succeeds."""
    transaction = commit_transaction(
        rider_id=cart.rider_id,
        lines=cart.lines,
        payment_method=payment_method,
        tax_policy=tax_policy,
    )
    cart.clear()
    return transaction


def get_transaction(transaction_id: int) -> Transaction:
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return transaction
