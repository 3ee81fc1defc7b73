# Overview: CRUD routes for catalog lookup tables, one URL prefix per table.

"""
Lookup routes

The same handlers serve /api/categories, /api/brands, /api/colors,
/api/sizes, /api/styles and /api/types. Reads are public so the
storefront can build its filters; writes require an admin role.
"""
from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import lookup_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


def _build_blueprint(resource_name: str) -> Blueprint:
    bp = Blueprint(f"lookup_{resource_name}", __name__, url_prefix=f"/api/{resource_name}")
    label = lookup_service.RESOURCES[resource_name].label

    @bp.get("")
    def list_items():
        items = lookup_service.repository(resource_name).list(search=request.args.get("search"))
        return jsonify({"items": items, "count": len(items)}), 200

    @bp.get("/<int:item_id>")
    def get_item(item_id: int):
        try:
            return jsonify({"item": lookup_service.repository(resource_name).get(item_id)}), 200
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404

    @bp.post("")
    @require_auth
    @require_admin
    def create_item():
        try:
            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                return jsonify({"error": "Invalid JSON payload"}), 400
            item = lookup_service.repository(resource_name).create(payload)
            return jsonify({"item": item}), 201
        except ValidationError as e:
            db.session.rollback()
            return jsonify({"error": str(e)}), 400
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to create %s", label)
            return jsonify({"error": "Internal server error"}), 500

    @bp.put("/<int:item_id>")
    @require_auth
    @require_admin
    def update_item(item_id: int):
        try:
            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                return jsonify({"error": "Invalid JSON payload"}), 400
            item = lookup_service.repository(resource_name).update(item_id, payload)
            return jsonify({"item": item}), 200
        except ValidationError as e:
            db.session.rollback()
            return jsonify({"error": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to update %s %s", label, item_id)
            return jsonify({"error": "Internal server error"}), 500

    @bp.delete("/<int:item_id>")
    @require_auth
    @require_admin
    def delete_item(item_id: int):
        try:
            lookup_service.repository(resource_name).delete(item_id)
            return jsonify({"message": f"{label} removed"}), 200
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to delete %s %s", label, item_id)
            return jsonify({"error": "Internal server error"}), 500

    return bp


lookup_blueprints = [_build_blueprint(name) for name in lookup_service.RESOURCES]
