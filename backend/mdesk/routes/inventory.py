# Overview: Flask API routes for stock levels and manual adjustments.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import inventory_service
from ..services.inventory_service import InventoryError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_admin
def list_inventory():
    """Per-SKU stock levels. Query params: search (optional)."""
    rows = inventory_service.list_inventory(search=request.args.get("search"))
    return jsonify({"items": rows, "count": len(rows)}), 200


@inventory_bp.post("/adjust")
@require_auth
@require_admin
def adjust_stock():
    """
    Apply a signed manual adjustment.

    Request body:
    {
        "sku": "LS-M-BLU",
        "quantity": -2,
        "reason": "damage",
        "notes": "Water damage"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("sku") or data.get("quantity") in (None, ""):
            return jsonify({"error": "sku and quantity required"}), 400

        entry = inventory_service.adjust_stock(
            sku=str(data["sku"]).strip(),
            quantity=data["quantity"],
            reason=data.get("reason") or "correction",
            user_id=g.identity.user_id,
            notes=data.get("notes"),
        )
        return jsonify({"entry": entry.to_dict()}), 201

    except (InventoryError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/ledger")
@require_auth
@require_admin
def list_ledger():
    """Query params: sku (optional), limit (default 200, max 500)."""
    entries = inventory_service.list_ledger(
        sku=request.args.get("sku"),
        limit=request.args.get("limit", 200, type=int),
    )
    return jsonify({"entries": entries, "count": len(entries)}), 200
