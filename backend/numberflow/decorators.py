# Overview: Request decorators for API routes: caller identity and role gates.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services.user_service import get_identity


IDENTITY_HEADER = "X-User-Id"


def require_identity(f):
    """
    Resolve the caller from the X-User-Id header.

    Sets g.identity to the Identity built from the users collection.
    Authentication happens upstream; this only maps a uid to a role.

    Returns 401 if the header is missing or names no known user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        uid = (request.headers.get(IDENTITY_HEADER) or "").strip()
        if not uid:
            return jsonify({"error": "Authentication required"}), 401

        identity = get_identity(current_app.extensions["document_store"], uid)
        if identity is None:
            return jsonify({"error": "Unknown user"}), 401

        g.identity = identity
        return f(*args, **kwargs)

    return decorated_function


def require_admin_role(f):
    """Use after @require_identity."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.identity.is_admin:
            return jsonify({"error": "Admin role required"}), 403
        return f(*args, **kwargs)

    return decorated_function
