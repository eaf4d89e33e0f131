# backend/riderpos/routes/settings.py
"""Tax settings routes."""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CheckoutError
from ..services import tax_service
from ..validation import ValidationError, coerce_bool
from .checkout import checkout_error_response


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/tax")
def list_tax_policies_route():
    active = tax_service.get_active_tax_policy()
    return jsonify({
        "active": active.to_dict() if active else None,
        "policies": [p.to_dict() for p in tax_service.list_tax_policies()],
    }), 200


def _save(policy_id: int | None):
    data = request.get_json(silent=True) or {}
    try:
        policy = tax_service.save_tax_policy(
            name=data.get("name"),
            rate=data.get("rate"),
            is_active=coerce_bool("is_active", data.get("is_active", False)),
            policy_id=policy_id,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CheckoutError as e:
        return checkout_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to save tax policy")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"policy": policy.to_dict()}), 201 if policy_id is None else 200


@settings_bp.post("/tax")
def create_tax_policy_route():
    return _save(None)


@settings_bp.put("/tax/<int:policy_id>")
def update_tax_policy_route(policy_id: int):
    return _save(policy_id)
