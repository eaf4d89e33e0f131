from __future__ import annotations

from typing import Any, Iterable


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(name: str, value: Any, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion for request payloads.

    Rejects bools, floats, decimals and scientific notation so that "1e3" or
    2.5 never silently become quantities.
    """
    if value is None:
        raise ValidationError(f"{name} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return result


def coerce_bool(name: str, value: Any) -> bool:
    """
    Strict boolean coercion: JSON true/false or the strings "true"/"false".

    Anything else (0, "no", "yes") is rejected.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ValidationError(f"{name} must be true or false")

def coerce_payment_method(value: Any, allowed: Iterable[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("payment_method is required")
    method = value.strip().upper()
    allowed = tuple(allowed)
    if method not in allowed:
        raise ValidationError(f"payment_method must be one of {', '.join(allowed)}")
    return method


def parse_cart_items(payload: Any) -> list[tuple[int, int]]:
    """
    Validate a list of {"product_id", "quantity"} objects from a request body.

    Returns (product_id, quantity) pairs in request order.
    """
    if not isinstance(payload, list) or not payload:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(payload):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = coerce_int(f"items[{index}].product_id", raw.get("product_id"), minimum=1)
        quantity = coerce_int(f"items[{index}].quantity", raw.get("quantity"), minimum=1)
        items.append((product_id, quantity))
    return items
