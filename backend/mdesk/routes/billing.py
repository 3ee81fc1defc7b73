# Overview: Flask API routes for customer invoices, vendor bills and payment terms.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import billing_service
from ..services.billing_service import BillingError, BillingAccessError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")
bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")
payment_terms_bp = Blueprint("payment_terms", __name__, url_prefix="/api/payment-terms")


# =============================================================================
# CUSTOMER INVOICES
# =============================================================================

@invoices_bp.get("")
@require_auth
@require_admin
def list_invoices():
    invoices = billing_service.list_invoices()
    return jsonify({"invoices": invoices, "count": len(invoices)}), 200


@invoices_bp.get("/mine")
@require_auth
def my_invoices():
    invoices = billing_service.list_invoices_for_contact(g.identity.contact_id)
    return jsonify({"invoices": invoices, "count": len(invoices)}), 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice(invoice_id: int):
    try:
        invoice = billing_service.get_invoice(invoice_id, g.identity)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except BillingAccessError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@invoices_bp.get("/order/<int:order_id>")
@require_auth
def get_invoice_for_order(order_id: int):
    try:
        invoice = billing_service.get_invoice_for_order(order_id, g.identity)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except BillingAccessError as e:
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# VENDOR BILLS
# =============================================================================

@bills_bp.get("")
@require_auth
@require_admin
def list_bills():
    bills = billing_service.list_bills(status=request.args.get("status"))
    return jsonify({"bills": bills, "count": len(bills)}), 200


@bills_bp.get("/<int:bill_id>")
@require_auth
@require_admin
def get_bill(bill_id: int):
    try:
        return jsonify({"bill": billing_service.get_bill(bill_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# PAYMENT TERMS
# =============================================================================

@payment_terms_bp.get("")
@require_auth
def list_payment_terms():
    terms = billing_service.list_payment_terms()
    return jsonify({"payment_terms": terms, "count": len(terms)}), 200


@payment_terms_bp.post("")
@require_auth
@require_admin
def create_payment_term():
    """
    Request body:
    {
        "name": "2/10 Net 30",
        "early_payment_discount": true,
        "discount_bps": 200,
        "discount_days": 10,
        "early_pay_discount_computation": "base_amount"   (or "total_amount")
    }
    """
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        term = billing_service.create_payment_term(payload)
        return jsonify({"payment_term": term.to_dict()}), 201

    except (ValidationError, BillingError) as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create payment term")
        return jsonify({"error": "Internal server error"}), 500


@payment_terms_bp.delete("/<int:term_id>")
@require_auth
@require_admin
def delete_payment_term(term_id: int):
    try:
        billing_service.delete_payment_term(term_id)
        return jsonify({"message": "Payment term removed"}), 200
    except BillingError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete payment term %s", term_id)
        return jsonify({"error": "Internal server error"}), 500
