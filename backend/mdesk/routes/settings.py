# Overview: Flask API routes for system settings.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import settings_service
from ..services.settings_service import SettingsError
from ..decorators import require_auth, require_admin


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_admin
def get_settings():
    return jsonify({"settings": settings_service.get_settings_row().to_dict()}), 200


@settings_bp.put("")
@require_auth
@require_admin
def update_settings():
    """Request body: {"automatic_invoicing": true}"""
    try:
        row = settings_service.update_settings(
            request.get_json(silent=True),
            user_id=g.identity.user_id,
        )
        current_app.logger.info(
            "Automatic invoicing set to %s by user %s", row.automatic_invoicing, g.identity.user_id
        )
        return jsonify({"settings": row.to_dict()}), 200

    except SettingsError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
