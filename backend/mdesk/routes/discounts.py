# Overview: Flask API routes for discount offers, coupons and coupon validation.

"""
Discount routes

POST /api/discounts/validate prices a coupon against the caller's cart
without redeeming it. Offers and coupons are managed by admins.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import discount_service
from ..services.discount_service import CouponError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


@discounts_bp.post("/validate")
@require_auth
def validate_coupon():
    """
    Request body:
    {
        "code": "SAVE20",
        "cart_items": [{"product_id": 1, "sku": "LS-M-BLU", "qty": 2}]
    }

    Returns the coupon, its offer and calculated_discount_cents.
    """
    try:
        data = request.get_json(silent=True) or {}
        lines = discount_service.parse_cart_lines(data.get("cart_items"))
        quote = discount_service.evaluate_coupon(
            data.get("code"),
            lines,
            contact_id=g.identity.contact_id,
            user_id=g.identity.user_id,
            channel="website",
        )
        return jsonify(quote.to_dict()), 200

    except CouponError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to validate coupon")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# OFFERS
# =============================================================================

@discounts_bp.get("/offers")
@require_auth
@require_admin
def list_offers():
    active_only = request.args.get("active_only", "false").lower() == "true"
    offers = discount_service.list_offers(active_only=active_only)
    return jsonify({"offers": offers, "count": len(offers)}), 200


@discounts_bp.get("/offers/<int:offer_id>")
@require_auth
@require_admin
def get_offer(offer_id: int):
    try:
        return jsonify({"offer": discount_service.get_offer(offer_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@discounts_bp.post("/offers")
@require_auth
@require_admin
def create_offer():
    """
    Request body:
    {
        "name": "Summer Sale",
        "discount_type": "percentage",   ("percentage" in basis points, or "flat" in cents)
        "discount_value": 2000,
        "min_cart_value_cents": 100000,
        "available_on": "both",          ("website", "sales" or "both")
        "start_date": "2026-06-01T00:00:00Z",
        "end_date": "2026-06-30T23:59:59Z",
        "rules": [{"facet": "category", "target_id": 3}]
    }
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        offer = discount_service.create_offer(payload)
        return jsonify({"offer": offer.to_dict()}), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create discount offer")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.put("/offers/<int:offer_id>")
@require_auth
@require_admin
def update_offer(offer_id: int):
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        offer = discount_service.update_offer(offer_id, payload)
        return jsonify({"offer": offer.to_dict()}), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update discount offer %s", offer_id)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# COUPONS
# =============================================================================

@discounts_bp.get("/coupons")
@require_auth
@require_admin
def list_coupons():
    coupons = discount_service.list_coupons(offer_id=request.args.get("offer_id", type=int))
    return jsonify({"coupons": coupons, "count": len(coupons)}), 200


@discounts_bp.post("/coupons")
@require_auth
@require_admin
def create_coupon():
    """
    Request body:
    {
        "code": "SAVE20",
        "offer_id": 1,
        "contact_id": 7,            (optional, locks the code to one customer)
        "expiration_date": "2026-12-31",
        "usage_limit": 1
    }
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        coupon = discount_service.create_coupon(payload)
        return jsonify({"coupon": coupon.to_dict()}), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create coupon")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.patch("/coupons/<int:coupon_id>")
@require_auth
@require_admin
def set_coupon_active(coupon_id: int):
    """Request body: {"is_active": false}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active must be a boolean"}), 400
    try:
        coupon = discount_service.set_coupon_active(coupon_id, data["is_active"])
        return jsonify({"coupon": coupon.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
