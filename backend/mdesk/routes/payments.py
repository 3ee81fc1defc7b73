# Overview: Flask API routes for registering and listing payments.

"""
Payment Registration API Routes

Inbound payments settle customer invoices; outbound payments settle
vendor bills. A payment with no document is recorded on the contact
only. The settled document moves to partially_paid or paid.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import payment_service
from ..services.payment_service import PaymentError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
@require_admin
def register_payment_route():
    """
    Request body:
    {
        "contact_id": 7,
        "payment_type": "inbound",     ("inbound" or "outbound")
        "amount_cents": 50000,
        "payment_method": "bank",
        "payment_date": "2026-10-19",  (optional)
        "invoice_id": 12,              (inbound only, optional)
        "bill_id": null,               (outbound only, optional)
        "notes": "..."
    }

    Returns:
        201: payment recorded
        400: invalid input or document mismatch
        404: contact or document not found
    """
    try:
        payment = payment_service.register_payment(
            request.get_json(silent=True),
            user_id=g.identity.user_id,
        )
        current_app.logger.info("Payment %s registered by user %s", payment.payment_number, g.identity.user_id)
        return jsonify({"payment": payment.to_dict()}), 201

    except (PaymentError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to register payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("")
@require_auth
@require_admin
def list_payments_route():
    """Query params: payment_type, contact_id (both optional)."""
    payments = payment_service.list_payments(
        payment_type=request.args.get("payment_type"),
        contact_id=request.args.get("contact_id", type=int),
    )
    return jsonify({"payments": payments, "count": len(payments)}), 200
