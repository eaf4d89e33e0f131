# Overview: Service-layer operations for rider and warehouse inventory.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Distribution, Product, Profile, RiderInventory, WarehouseStock
from ..errors import InsufficientStock, NotFoundError
from ..validation import ValidationError
from riderpos.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_event
"""
Rider inventory invariants:

- RiderInventory.quantity is a stored on-hand count per (rider, product).
- Distribution increments it; committed sales decrement it.
- quantity may never go negative. Decrements are a single guarded UPDATE
  (quantity >= n in the WHERE clause), so two sessions racing for the last
  units cannot both succeed: the loser matches zero rows.
- adjust_rider_inventory never commits. Callers compose it into their own
  transaction together with the document that caused the change.
"""


@dataclass(frozen=True)
class InventoryPosition:
    """What a rider carries of one product, with the product's current price."""
    product_id: int
    sku: str
    name: str
    unit_price: int
    quantity: int
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


def require_rider(rider_id: int) -> Profile:
    rider = db.session.get(Profile, rider_id)
    if rider is None:
        raise NotFoundError(f"Rider {rider_id} not found", details={"rider_id": rider_id})
    if not rider.is_rider:
        raise ValidationError(f"Profile {rider_id} is not a rider")
    return rider


def _require_product(product_id: int, *, require_active: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ValidationError(f"Product {product_id} is inactive")
    return product


def get_rider_inventory(rider_id: int, *, include_empty: bool = True) -> list[InventoryPosition]:
    """On-hand stock for one rider, ordered by product name."""
    query = (
        db.session.query(RiderInventory, Product)
        .join(Product, Product.id == RiderInventory.product_id)
        .filter(RiderInventory.rider_id == rider_id)
    )
    if not include_empty:
        query = query.filter(RiderInventory.quantity > 0)

    rows = query.order_by(Product.name.asc(), Product.id.asc()).all()
    return [
        InventoryPosition(
            product_id=product.id,
            sku=product.sku,
            name=product.name,
            unit_price=product.price,
            quantity=inv.quantity,
            updated_at=inv.updated_at,
        )
        for inv, product in rows
    ]


def get_quantity_on_hand(rider_id: int, product_id: int) -> int:
    qty = (
        db.session.query(RiderInventory.quantity)
        .filter_by(rider_id=rider_id, product_id=product_id)
        .scalar()
    )
    return int(qty or 0)


def _increment(rider_id: int, product_id: int, delta: int) -> None:
    stmt = (
        update(RiderInventory)
        .where(
            RiderInventory.rider_id == rider_id,
            RiderInventory.product_id == product_id,
        )
        .values(
            quantity=RiderInventory.quantity + delta,
            version_id=RiderInventory.version_id + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )
    if db.session.execute(stmt).rowcount:
        return

    # First distribution of this product to this rider
    try:
        with db.session.begin_nested():
            db.session.add(RiderInventory(rider_id=rider_id, product_id=product_id, quantity=delta))
    except IntegrityError:
        # Another session created the row first; add on top of it.
        if not db.session.execute(stmt).rowcount:
            raise


def _decrement(rider_id: int, product_id: int, quantity: int) -> None:
    stmt = (
        update(RiderInventory)
        .where(
            RiderInventory.rider_id == rider_id,
            RiderInventory.product_id == product_id,
            RiderInventory.quantity >= quantity,
        )
        .values(
            quantity=RiderInventory.quantity - quantity,
            version_id=RiderInventory.version_id + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )
    if not db.session.execute(stmt).rowcount:
        available = get_quantity_on_hand(rider_id, product_id)
        raise InsufficientStock(product_id, quantity, available)


def adjust_rider_inventory(rider_id: int, product_id: int, delta: int) -> None:
    """
    Apply a quantity change to a rider's stock inside the current transaction.

    Positive deltas create the row on first use. Negative deltas raise
    InsufficientStock instead of driving the row below zero.
    """
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if delta > 0:
        _increment(rider_id, product_id, delta)
    else:
        _decrement(rider_id, product_id, -delta)


def distribute_to_rider(
    *,
    rider_id: int,
    product_id: int,
    quantity: int,
    actor_id: int | None = None,
    note: str | None = None,
) -> Distribution:
    """
    Record a warehouse-to-rider handover and increase the rider's stock.

    Warehouse stock is not decremented here; the warehouse side is managed
    separately.
    """
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")

    def _op():
        require_rider(rider_id)
        _require_product(product_id, require_active=True)

        distribution = Distribution(
            rider_id=rider_id,
            product_id=product_id,
            quantity=quantity,
            distributed_by=actor_id,
            note=note,
            created_at=utcnow(),
        )
        db.session.add(distribution)
        db.session.flush()  # Get ID

        adjust_rider_inventory(rider_id, product_id, quantity)

        append_ledger_event(
            event_type="inventory.distributed",
            entity_type="distribution",
            entity_id=distribution.id,
            rider_id=rider_id,
            actor_id=actor_id,
            occurred_at=distribution.created_at,
            note=note,
            payload=f"product_id={product_id},quantity={quantity}",
        )

        db.session.commit()
        return distribution

    distribution = run_with_retry(_op)
    current_app.logger.info(
        "Distributed %s x product %s to rider %s", quantity, product_id, rider_id
    )
    return distribution


def list_distributions(*, rider_id: int | None = None, limit: int = 100) -> list[Distribution]:
    query = db.session.query(Distribution)
    if rider_id is not None:
        query = query.filter(Distribution.rider_id == rider_id)
    return query.order_by(Distribution.created_at.desc(), Distribution.id.desc()).limit(limit).all()


def set_warehouse_stock(*, product_id: int, quantity: int, min_stock: int = 0) -> WarehouseStock:
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")
    if min_stock < 0:
        raise ValidationError("min_stock must be >= 0")

    def _op():
        _require_product(product_id)
        stock = lock_for_update(
            db.session.query(WarehouseStock).filter_by(product_id=product_id)
        ).first()
        if stock is None:
            stock = WarehouseStock(product_id=product_id)
            db.session.add(stock)
        stock.quantity = quantity
        stock.min_stock = min_stock
        db.session.commit()
        return stock

    return run_with_retry(_op)


def low_stock_items() -> list[dict]:
    """Warehouse rows at or below their minimum stock threshold."""
    rows = (
        db.session.query(WarehouseStock, Product)
        .join(Product, Product.id == WarehouseStock.product_id)
        .filter(WarehouseStock.quantity <= WarehouseStock.min_stock)
        .order_by(WarehouseStock.quantity.asc(), Product.name.asc())
        .all()
    )
    return [
        {
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "quantity": stock.quantity,
            "min_stock": stock.min_stock,
        }
        for stock, product in rows
    ]
