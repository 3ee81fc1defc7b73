# Overview: Flask API routes for registration, login, logout and the current user.

"""
Authentication API routes

- Public self-registration always creates a customer account
- Login returns an opaque bearer token; the database keeps only its hash
- Admins can create accounts with any role
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..models import User
from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError, RegistrationError
from ..decorators import require_auth, require_admin, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

_PROFILE_FIELDS = ("mobile", "city", "state", "pincode")


def _session_response(user: User, status: int):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), status


@auth_bp.post("/register")
def register_route():
    """
    Create a customer account and its linked contact, then log it in.

    Request body: {"name", "email", "password", "mobile"?, "city"?, "state"?, "pincode"?}
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password") or "",
            role="customer",
            **{f: data.get(f) for f in _PROFILE_FIELDS},
        )
        return _session_response(user, 201)

    except (RegistrationError, PasswordValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid email or password"}), 401

        return _session_response(user, 200)

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token in the Authorization header."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    user = db.session.get(User, g.identity.user_id)
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    """Admin-created account; role may be admin, customer or both."""
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password") or "",
            role=data.get("role") or "customer",
            **{f: data.get(f) for f in _PROFILE_FIELDS},
        )
        current_app.logger.info("User %s created by admin %s", user.id, g.identity.user_id)
        return jsonify({"user": user.to_dict()}), 201

    except (RegistrationError, PasswordValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
