# backend/numberflow/routes/system.py
"""
System, user and sweep endpoints.

- GET    /health                          - database connectivity
- GET    /api/me                          - the caller's identity
- GET    /api/employees                   - display names of all users
- POST   /api/users                       - admin: create a user document
- DELETE /api/users/<uid>                 - admin: delete a user (never yourself)
- GET    /api/system/recently-promoted    - ids auto-promoted to RTS in the highlight window
- POST   /api/system/sweeps               - admin: run sweeps now (?only=rts|safe-custody|reminders)
"""

import time

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_admin_role, require_identity
from ..extensions import db
from ..services import sweep_service, user_service
from ..services.session_service import request_engine
from ..time_utils import to_utc_z, utcnow
from .common import json_body, respond


system_bp = Blueprint("system", __name__)


@system_bp.get("/health")
def health():
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        current_app.logger.exception("Health check failed")
        return jsonify({"status": "unhealthy", "error": str(e)}), 503
    return jsonify({
        "status": "healthy",
        "database_ms": round((time.time() - start_time) * 1000, 2),
        "timestamp": to_utc_z(utcnow()),
    })


@system_bp.get("/api/me")
@require_identity
def me_route():
    identity = g.identity
    return respond({
        "uid": identity.uid,
        "display_name": identity.display_name,
        "email": identity.email,
        "role": identity.role,
    })


@system_bp.get("/api/employees")
@require_identity
def employees_route():
    return respond({"employees": request_engine().state.employees()})


@system_bp.post("/api/users")
@require_identity
@require_admin_role
def create_user_route():
    data = json_body()
    identity = user_service.create_user(
        current_app.extensions["document_store"],
        data.get("uid"),
        data.get("display_name"),
        data.get("email"),
        data.get("role") or "employee",
        actor=g.identity,
    )
    return respond({"uid": identity.uid, "role": identity.role}, 201)


@system_bp.delete("/api/users/<uid>")
@require_identity
def delete_user_route(uid: str):
    user_service.delete_user(request_engine(), uid)
    return respond({"uid": uid})


@system_bp.get("/api/system/recently-promoted")
@require_identity
def recently_promoted_route():
    tracker = current_app.extensions.get("recently_promoted")
    ids = sorted(tracker.active()) if tracker is not None else []
    return respond({"ids": ids})


@system_bp.post("/api/system/sweeps")
@require_identity
@require_admin_role
def run_sweeps_route():
    only = request.args.get("only") or None
    if only is not None and only not in sweep_service.SWEEP_NAMES:
        return jsonify({"error": f"only must be one of: {', '.join(sweep_service.SWEEP_NAMES)}"}), 400
    results = sweep_service.run_sweeps(current_app._get_current_object(), only=only)
    return respond({name: result.to_dict() for name, result in results.items()})
