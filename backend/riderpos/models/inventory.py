from __future__ import annotations

from ..extensions import db
from riderpos.time_utils import to_utc_z


class WarehouseStock(db.Model):
    """Central warehouse stock, one row per product. Separate from rider stock."""
    __tablename__ = "warehouse_stock"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_warehouse_stock_quantity_non_negative"),
        db.CheckConstraint("min_stock >= 0", name="ck_warehouse_stock_min_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, unique=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "is_low": self.is_low,
            "updated_at": to_utc_z(self.updated_at),
        }


class RiderInventory(db.Model):
    """
    Stock currently carried by a rider.

    INVARIANT: quantity never goes negative. The CHECK constraint is the last
    line; services decrement with a guarded UPDATE so an over-deduction
    matches zero rows instead of tripping the constraint.
    """
    __tablename__ = "rider_inventory"
    __table_args__ = (
        db.UniqueConstraint("rider_id", "product_id", name="uq_rider_inventory_rider_product"),
        db.CheckConstraint("quantity >= 0", name="ck_rider_inventory_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rider_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    rider = db.relationship("Profile")
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rider_id": self.rider_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class Distribution(db.Model):
    """Append-only record of stock handed from the warehouse to a rider."""
    __tablename__ = "distributions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_distributions_quantity_positive"),
        db.Index("ix_distributions_rider_created", "rider_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rider_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    distributed_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rider_id": self.rider_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "distributed_by": self.distributed_by,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
