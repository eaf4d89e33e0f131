from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from riderpos.time_utils import to_utc_z


class TaxPolicy(db.Model):
    """
    Named tax rate applied at checkout.

    Rate is stored in basis points (1000 = 10.00%). At most one row is
    active; tax_service.save_tax_policy deactivates the others when a policy
    is switched on.
    """
    __tablename__ = "tax_policies"
    __table_args__ = (
        db.CheckConstraint("rate_bps >= 0 AND rate_bps <= 10000", name="ck_tax_policies_rate_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    rate_bps = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def rate(self) -> Decimal:
        """Rate as a percentage."""
        return Decimal(self.rate_bps) / 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rate": str(self.rate),
            "rate_bps": self.rate_bps,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
