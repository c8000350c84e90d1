# backend/numberflow/__init__.py
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate, store



def register_error_handlers(app: Flask) -> None:
    """Typed service errors -> JSON responses; the single error boundary for every route."""
    from .permissions import PermissionDeniedError
    from .services.document_store import StoreWriteError
    from .services.lifecycle_service import DeletionBlockedError, LifecycleError, NotFoundError
    from .validation import ConflictError, ValidationError

    store_error_status = {
        "permission-denied": 403,
        "aborted": 409,
        "not-found": 404,
        "invalid-argument": 400,
    }

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(DeletionBlockedError)
    def handle_deletion_blocked(e):
        return jsonify({
            "error": str(e),
            "blocked_count": e.blocked_count,
            "blocked_mobiles": e.blocked_mobiles,
        }), 409

    @app.errorhandler(LifecycleError)
    def handle_lifecycle(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(e):
        return jsonify({"error": str(e)}), 403

    @app.errorhandler(StoreWriteError)
    def handle_store_write(e):
        app.logger.warning("Write rejected on %s %s: %s (%s)", request.method, request.path, e.reason, e.path)
        return jsonify(e.to_dict()), store_error_status.get(e.reason, 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    store.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.sweep_service import RecentlyPromoted
    app.extensions["recently_promoted"] = RecentlyPromoted(app.config["AUTO_RTS_HIGHLIGHT_SECONDS"])

    # Register blueprints
    from .routes.system import system_bp
    from .routes.numbers import numbers_bp
    from .routes.sales import sales_bp, portouts_bp
    from .routes.prebookings import prebookings_bp, dealer_purchases_bp
    from .routes.imports import imports_bp
    from .routes.reminders import reminders_bp, activities_bp, payments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(numbers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(portouts_bp)
    app.register_blueprint(prebookings_bp)
    app.register_blueprint(dealer_purchases_bp)
    app.register_blueprint(imports_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(activities_bp)
    app.register_blueprint(payments_bp)

    register_error_handlers(app)

    # One live-state session per request, closed when the request ends
    from .services.session_service import close_request_session
    app.teardown_request(close_request_session)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "X-User-Id, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config["SWEEPS_ENABLED"]:
        from .services.sweep_service import SweepScheduler
        scheduler = SweepScheduler(app)
        app.extensions["sweep_scheduler"] = scheduler
        scheduler.start()

    return app
