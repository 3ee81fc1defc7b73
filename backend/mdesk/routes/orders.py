# Overview: Flask API routes for order placement, payment verification and delivery.

"""
Order routes

POST /api/orders places an order for the caller and returns the payment
intent's client_secret; the browser completes payment with the gateway
and then calls POST /api/orders/verify-payment.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import order_service
from ..services import settings_service
from ..services.payment_gateway import get_gateway, GatewayError
from ..services.order_service import OrderError, OrderAccessError
from ..services.discount_service import CouponError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def place_order():
    """
    Request body:
    {
        "items": [{"product_id": 1, "sku": "LS-M-BLU", "qty": 2}],
        "shipping_address": {"address": "...", "city": "...", "postal_code": "...", "country": "..."},
        "payment_method": "card",
        "shipping_price_cents": 0,
        "coupon_code": "SAVE20"  (optional)
    }

    Returns:
        201: {"order", "client_secret", "invoice_id"}
        400: invalid items, insufficient stock or rejected coupon
        502: payment intent could not be created
    """
    try:
        payload = request.get_json(silent=True)
        placed = order_service.place_order(
            g.identity,
            payload,
            settings=settings_service.current_settings(),
            gateway=get_gateway(),
        )
        return jsonify({
            "order": placed.order.to_dict(),
            "client_secret": placed.client_secret,
            "invoice_id": placed.invoice_id,
        }), 201

    except CouponError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except (OrderError, ValidationError) as e:
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except GatewayError as e:
        current_app.logger.warning("Payment intent creation failed: %s", e)
        return jsonify({"error": "Payment gateway error"}), 502
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/verify-payment")
@require_auth
def verify_payment():
    """
    Request body: {"payment_intent_id": "pi_..."}

    Idempotent: verifying an already-paid order returns it unchanged.
    """
    try:
        data = request.get_json(silent=True) or {}
        order, changed = order_service.verify_payment(
            data.get("payment_intent_id"),
            g.identity,
            gateway=get_gateway(),
        )
        message = "Payment verified" if changed else "Order already paid"
        return jsonify({"order": order.to_dict(), "message": message}), 200

    except OrderAccessError as e:
        return jsonify({"error": str(e)}), 403
    except OrderError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except GatewayError as e:
        current_app.logger.warning("Payment intent lookup failed: %s", e)
        return jsonify({"error": "Payment gateway error"}), 502
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to verify payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/mine")
@require_auth
def my_orders():
    orders = order_service.list_orders_for_user(g.identity.user_id)
    return jsonify({"orders": orders, "count": len(orders)}), 200


@orders_bp.get("")
@require_auth
@require_admin
def list_orders():
    orders = order_service.list_orders()
    return jsonify({"orders": orders, "count": len(orders)}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order(order_id: int):
    try:
        order = order_service.get_order(order_id, g.identity)
        return jsonify({"order": order.to_dict()}), 200
    except OrderAccessError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@orders_bp.put("/<int:order_id>/deliver")
@require_auth
@require_admin
def mark_delivered(order_id: int):
    try:
        order = order_service.mark_delivered(order_id)
        return jsonify({"order": order.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark order %s delivered", order_id)
        return jsonify({"error": "Internal server error"}), 500
