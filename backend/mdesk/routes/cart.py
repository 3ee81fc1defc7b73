# Overview: Flask API routes for the caller's shopping cart.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import cart_service
from ..services.cart_service import CartError
from ..validation import ValidationError, NotFoundError, coerce_int
from ..decorators import require_auth


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_auth
def get_cart():
    return jsonify({"cart": cart_service.get_cart(g.identity.user_id)}), 200


@cart_bp.post("")
@require_auth
def add_item():
    """
    Add a variant to the cart (or raise its quantity).

    Request body: {"product_id": 1, "sku": "LS-M-BLU", "qty": 1}

    Returns:
        201: cart created by this call
        200: existing cart updated
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("product_id") in (None, "") or not data.get("sku"):
            return jsonify({"error": "product_id and sku required"}), 400

        cart, created = cart_service.upsert_item(
            g.identity.user_id,
            product_id=coerce_int("product_id", data["product_id"]),
            sku=str(data["sku"]).strip(),
            qty=data.get("qty", 1),
        )
        return jsonify({"cart": cart}), 201 if created else 200

    except (CartError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/items/<sku>")
@require_auth
def set_quantity(sku: str):
    """Request body: {"qty": 3}"""
    try:
        data = request.get_json(silent=True) or {}
        cart = cart_service.set_quantity(g.identity.user_id, sku, data.get("qty"))
        return jsonify({"cart": cart}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/items/<sku>")
@require_auth
def remove_item(sku: str):
    try:
        cart = cart_service.remove_item(g.identity.user_id, sku)
        return jsonify({"cart": cart}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("")
@require_auth
def clear_cart():
    try:
        cart_service.clear_cart(g.identity.user_id)
        return jsonify({"message": "Cart cleared"}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500
