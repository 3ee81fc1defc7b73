# Overview: Flask API routes for purchase orders and receiving.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import purchase_service
from ..services.purchase_service import PurchaseError
from ..validation import ValidationError, NotFoundError, coerce_date
from ..decorators import require_auth, require_admin


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
@require_admin
def create_purchase_order():
    """
    Create a draft purchase order.

    Request body:
    {
        "vendor_id": 4,
        "order_date": "2026-10-01",   (optional, defaults to today)
        "items": [{"product_id": 1, "sku": "LS-M-BLU", "quantity": 10,
                   "unit_price_cents": 50000, "tax_bps": 500}],
        "notes": "..."
    }

    unit_price_cents and tax_bps default to the variant's purchase price and tax.
    """
    try:
        po = purchase_service.create_purchase_order(
            request.get_json(silent=True),
            user_id=g.identity.user_id,
        )
        return jsonify({"purchase_order": po.to_dict()}), 201

    except (PurchaseError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_auth
@require_admin
def list_purchase_orders():
    orders = purchase_service.list_purchase_orders(status=request.args.get("status"))
    return jsonify({"purchase_orders": orders, "count": len(orders)}), 200


@purchases_bp.get("/<int:po_id>")
@require_auth
@require_admin
def get_purchase_order(po_id: int):
    try:
        po = purchase_service.get_purchase_order(po_id)
        return jsonify({"purchase_order": po.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@purchases_bp.post("/<int:po_id>/confirm")
@require_auth
@require_admin
def confirm_purchase_order(po_id: int):
    try:
        po = purchase_service.confirm_purchase_order(po_id)
        return jsonify({"purchase_order": po.to_dict()}), 200

    except PurchaseError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to confirm purchase order %s", po_id)
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:po_id>/receive")
@require_auth
@require_admin
def receive_purchase_order(po_id: int):
    """
    Receive every line into stock and raise the vendor bill.

    Request body (optional): {"invoice_date": "2026-10-05", "due_date": "2026-11-04"}
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice_date = coerce_date("invoice_date", data["invoice_date"]) if data.get("invoice_date") else None
        due_date = coerce_date("due_date", data["due_date"]) if data.get("due_date") else None

        po, bill = purchase_service.receive_and_bill(po_id, invoice_date=invoice_date, due_date=due_date)
        current_app.logger.info("Purchase order %s received; bill %s raised", po.order_number, bill.bill_number)
        return jsonify({"purchase_order": po.to_dict(), "bill": bill.to_dict()}), 200

    except (PurchaseError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive purchase order %s", po_id)
        return jsonify({"error": "Internal server error"}), 500
