# Overview: Flask API routes for POS checkout; parses input and returns JSON responses.

# backend/riderpos/routes/checkout.py
"""
Checkout API routes.

The cart is rebuilt from the request on every call: the client sends the
rider and the (product_id, quantity) pairs it holds, the server validates
them against the rider's stock and prices them.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CheckoutError, CommitFailed, InsufficientStock, NotFoundError
from ..services import cart_service, checkout_service, tax_service
from ..validation import ValidationError, coerce_int, coerce_payment_method, parse_cart_items


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def checkout_error_response(exc: CheckoutError):
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, InsufficientStock):
        status = 409
    elif isinstance(exc, CommitFailed):
        status = 503
    else:
        status = 400
    return jsonify({"error": str(exc), "details": exc.details}), status


@checkout_bp.post("/quote")
def quote_route():
    """
    Price a cart without committing it.

    Body: {"rider_id": int, "items": [{"product_id": int, "quantity": int}]}
    """
    try:
        data = request.get_json(silent=True) or {}
        rider_id = coerce_int("rider_id", data.get("rider_id"), minimum=1)
        items = parse_cart_items(data.get("items"))

        cart = cart_service.build_cart(rider_id, items)
        policy = tax_service.get_active_tax_policy()
        return jsonify({"cart": cart.to_dict(policy)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CheckoutError as e:
        return checkout_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote cart")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/")
def commit_route():
    """
    Commit a sale.

    Body: {"rider_id": int, "payment_method": str,
           "items": [{"product_id": int, "quantity": int}]}
    """
    try:
        data = request.get_json(silent=True) or {}
        rider_id = coerce_int("rider_id", data.get("rider_id"), minimum=1)
        items = parse_cart_items(data.get("items"))
        payment_method = coerce_payment_method(
            data.get("payment_method"),
            current_app.config["PAYMENT_METHODS"],
        )

        cart = cart_service.build_cart(rider_id, items)
        transaction = checkout_service.checkout(cart, payment_method)
        return jsonify({"transaction": transaction.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CheckoutError as e:
        return checkout_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.get("/transactions/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        transaction = checkout_service.get_transaction(transaction_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"transaction": transaction.to_dict()}), 200
