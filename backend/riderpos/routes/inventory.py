# backend/riderpos/routes/inventory.py
"""
Inventory routes: rider stock, distributions and warehouse low-stock.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import CheckoutError
from ..services import inventory_service, ledger_service
from ..validation import ValidationError, coerce_int
from .checkout import checkout_error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/riders/<int:rider_id>")
def rider_inventory_route(rider_id: int):
    include_empty = request.args.get("include_empty", "true").lower() == "true"
    positions = inventory_service.get_rider_inventory(rider_id, include_empty=include_empty)
    return jsonify({
        "rider_id": rider_id,
        "items": [p.to_dict() for p in positions],
    }), 200


@inventory_bp.post("/distributions")
def distribute_route():
    """
    Hand stock from the warehouse to a rider.

    Body: {"rider_id", "product_id", "quantity", "distributed_by"?, "note"?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        rider_id = coerce_int("rider_id", payload.get("rider_id"), minimum=1)
        product_id = coerce_int("product_id", payload.get("product_id"), minimum=1)
        quantity = coerce_int("quantity", payload.get("quantity"), minimum=1)
        actor_id = payload.get("distributed_by")
        if actor_id is not None:
            actor_id = coerce_int("distributed_by", actor_id, minimum=1)
        note = payload.get("note")

        distribution = inventory_service.distribute_to_rider(
            rider_id=rider_id,
            product_id=product_id,
            quantity=quantity,
            actor_id=actor_id,
            note=note.strip() if isinstance(note, str) and note.strip() else None,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CheckoutError as e:
        return checkout_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to distribute inventory")
        return jsonify({"error": "Internal server error"}), 500

    on_hand = inventory_service.get_quantity_on_hand(rider_id, product_id)
    return jsonify({"distribution": distribution.to_dict(), "quantity_on_hand": on_hand}), 201


@inventory_bp.get("/distributions")
def list_distributions_route():
    rider_id = request.args.get("rider_id", type=int)
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 500))
    rows = inventory_service.list_distributions(rider_id=rider_id, limit=limit)
    return jsonify({"distributions": [d.to_dict() for d in rows]}), 200


@inventory_bp.get("/warehouse/low-stock")
def low_stock_route():
    return jsonify({"items": inventory_service.low_stock_items()}), 200


@inventory_bp.get("/ledger")
def ledger_route():
    rider_id = request.args.get("rider_id", type=int)
    event_type = request.args.get("event_type") or None
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 500))
    events = ledger_service.list_ledger_events(rider_id=rider_id, event_type=event_type, limit=limit)
    return jsonify({"events": [e.to_dict() for e in events]}), 200
