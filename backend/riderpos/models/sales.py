from __future__ import annotations

from ..extensions import db
from riderpos.time_utils import to_utc_z, utcnow


class Transaction(db.Model):
    """
    A committed POS sale.

    Immutable once written: there is no update or void path. Header, items
    and the matching rider inventory decrements are always written in one
    database transaction by the checkout service.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_number"),
        # Report queries filter by date range and optionally by rider
        db.Index("ix_transactions_rider_created", "rider_id", "created_at"),
        db.CheckConstraint("final_amount = total_amount + tax_amount", name="ck_transactions_final_amount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "TRX-20260101-000042")
    transaction_number = db.Column(db.String(64), nullable=False)

    rider_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)

    # Amounts in the currency's minor unit
    total_amount = db.Column(db.Integer, nullable=False)
    tax_amount = db.Column(db.Integer, nullable=False, default=0)
    final_amount = db.Column(db.Integer, nullable=False)

    # Tax policy as applied at commit time
    tax_name = db.Column(db.String(64), nullable=True)
    tax_rate_bps = db.Column(db.Integer, nullable=True)

    payment_method = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    rider = db.relationship("Profile")
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy="selectin",
        order_by="TransactionItem.id",
    )

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "rider_id": self.rider_id,
            "total_amount": self.total_amount,
            "tax_amount": self.tax_amount,
            "final_amount": self.final_amount,
            "tax_name": self.tax_name,
            "tax_rate_bps": self.tax_rate_bps,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """Line item of a committed sale. Name, SKU and price are snapshots."""
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)
    price_at_time = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    subtotal = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "price_at_time": self.price_at_time,
            "quantity": self.quantity,
            "subtotal": self.subtotal,
        }
