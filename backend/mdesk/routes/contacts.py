# Overview: Flask API routes for the customer / vendor address book.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import contact_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_admin


contacts_bp = Blueprint("contacts", __name__, url_prefix="/api/contacts")


@contacts_bp.get("")
@require_auth
@require_admin
def list_contacts():
    """Query params: contact_type (customer/vendor/admin), search."""
    try:
        contacts = contact_service.list_contacts(
            contact_type=request.args.get("contact_type"),
            search=request.args.get("search"),
        )
        return jsonify({"contacts": contacts, "count": len(contacts)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@contacts_bp.get("/<int:contact_id>")
@require_auth
@require_admin
def get_contact(contact_id: int):
    try:
        return jsonify({"contact": contact_service.get_contact(contact_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@contacts_bp.post("")
@require_auth
@require_admin
def create_contact():
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        contact = contact_service.create_contact(payload)
        return jsonify({"contact": contact.to_dict()}), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create contact")
        return jsonify({"error": "Internal server error"}), 500


@contacts_bp.put("/<int:contact_id>")
@require_auth
@require_admin
def update_contact(contact_id: int):
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        contact = contact_service.update_contact(contact_id, payload)
        return jsonify({"contact": contact.to_dict()}), 200

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update contact %s", contact_id)
        return jsonify({"error": "Internal server error"}), 500
