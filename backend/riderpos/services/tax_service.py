# Overview: Tax policy settings and the pure tax calculation used at checkout.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import TaxPolicy
from ..errors import InvalidTaxPolicy, NotFoundError
from ..validation import ValidationError
from .concurrency import run_with_retry

MAX_RATE = Decimal(100)


@dataclass(frozen=True)
class TaxPolicySnapshot:
    """Immutable view of a policy, taken when a sale is priced or committed."""
    name: str
    rate: Decimal
    active: bool = True

    @property
    def rate_bps(self) -> int:
        return int((parse_rate(self.rate) * 100).to_integral_value(rounding=ROUND_HALF_UP))

    @classmethod
    def from_model(cls, policy: TaxPolicy) -> "TaxPolicySnapshot":
        return cls(name=policy.name, rate=policy.rate, active=policy.is_active)

    def to_dict(self) -> dict:
        return {"name": self.name, "rate": str(self.rate), "active": self.active}


@dataclass(frozen=True)
class Totals:
    total_amount: int
    tax_amount: int
    final_amount: int

    def to_dict(self) -> dict:
        return {
            "total_amount": self.total_amount,
            "tax_amount": self.tax_amount,
            "final_amount": self.final_amount,
        }


def parse_rate(value) -> Decimal:
    """Rate as a percentage in [0, 100]. Raises InvalidTaxPolicy otherwise."""
    if value is None or isinstance(value, bool):
        raise InvalidTaxPolicy("Tax rate is required")
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidTaxPolicy(f"Tax rate {value!r} is not a number")
    if not rate.is_finite():
        raise InvalidTaxPolicy(f"Tax rate {value!r} is not a number")
    if rate < 0 or rate > MAX_RATE:
        raise InvalidTaxPolicy(
            f"Tax rate must be between 0 and 100, got {rate}",
            details={"rate": str(rate)},
        )
    return rate


def validate_tax_policy(name, rate) -> tuple[str, Decimal]:
    if not isinstance(name, str) or not name.strip():
        raise InvalidTaxPolicy("Tax policy name is required")
    parsed = parse_rate(rate)
    # Stored as basis points
    if parsed != parsed.quantize(Decimal("0.01")):
        raise InvalidTaxPolicy("Tax rate supports at most two decimal places")
    return name.strip(), parsed


def compute_tax(subtotal: int, policy: TaxPolicySnapshot | None) -> int:
    """
    Tax for a subtotal in minor units, rounded half-up to a whole unit.

    No policy, or an inactive one, means no tax.
    """
    if subtotal < 0:
        raise ValidationError("subtotal must be >= 0")
    if policy is None or not policy.active:
        return 0
    rate = parse_rate(policy.rate)
    tax = Decimal(subtotal) * rate / 100
    return int(tax.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_totals(subtotal: int, policy: TaxPolicySnapshot | None) -> Totals:
    tax = compute_tax(subtotal, policy)
    return Totals(total_amount=subtotal, tax_amount=tax, final_amount=subtotal + tax)


def get_active_tax_policy() -> TaxPolicySnapshot | None:
    policy = (
        db.session.query(TaxPolicy)
        .filter_by(is_active=True)
        .order_by(TaxPolicy.updated_at.desc(), TaxPolicy.id.desc())
        .first()
    )
    return TaxPolicySnapshot.from_model(policy) if policy else None


def list_tax_policies() -> list[TaxPolicy]:
    return db.session.query(TaxPolicy).order_by(TaxPolicy.id.asc()).all()


def save_tax_policy(
    *,
    name: str,
    rate,
    is_active: bool,
    policy_id: int | None = None,
) -> TaxPolicy:
    """
    Create or update a tax policy.

    Activating a policy deactivates every other policy in the same commit,
    so at most one policy is ever active.
    """
    clean_name, clean_rate = validate_tax_policy(name, rate)

    def _op():
        if policy_id is None:
            policy = TaxPolicy()
            db.session.add(policy)
        else:
            policy = db.session.get(TaxPolicy, policy_id)
            if policy is None:
                raise NotFoundError(f"Tax policy {policy_id} not found")

        policy.name = clean_name
        policy.rate_bps = int(clean_rate * 100)
        policy.is_active = bool(is_active)
        db.session.flush()

        if policy.is_active:
            (
                db.session.query(TaxPolicy)
                .filter(TaxPolicy.id != policy.id, TaxPolicy.is_active.is_(True))
                .update({TaxPolicy.is_active: False}, synchronize_session="fetch")
            )

        db.session.commit()
        return policy

    policy = run_with_retry(_op)
    current_app.logger.info(
        "Saved tax policy %s (%s%%, active=%s)", policy.name, policy.rate, policy.is_active
    )
    return policy
