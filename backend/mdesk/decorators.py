# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .models.auth import ADMIN_ROLES


def _is_authenticated() -> bool:
    return getattr(g, "identity", None) is not None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.identity (session_service.Identity) for the rest of the request.
    Returns 401 if the header is missing or the token is invalid, expired
    or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        identity = session_service.validate_session(token)
        if not identity:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.identity = identity
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated caller to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.identity.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


# Back-office endpoints
require_admin = require_role(*ADMIN_ROLES)
