"""
QA Board
Flask Application Factory.

Usage:
    from qaboard import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from qaboard.config import get_config
from qaboard.core.exceptions import NotFoundError, PermissionDenied, ReconciliationFailure, ValidationError
from qaboard.middleware.logging_config import configure_logging
from qaboard.middleware.session_context import init_session_context
from qaboard.middleware.timing import init_request_timing
from qaboard.models import db
from qaboard.services.optimistic_cache import init_board_cache
from qaboard.services.permission_gate import init_permission_gate
from qaboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()


def _register_error_handlers(app):
    """Map the domain exception taxonomy onto the standard error envelope."""

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_RULE, error.message, status=422, details=error.details)

    @app.errorhandler(PermissionDenied)
    def _handle_permission(error: PermissionDenied):
        db.session.rollback()
        details = {"reason": error.reason.value, "role": error.role}
        if error.phase:
            details["phase"] = error.phase
        if error.action:
            details["action"] = error.action
        return api_error(E.FORBIDDEN, error.message, status=403, details=details)

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return api_error(
            E.NOT_FOUND, str(error),
            details={"resource": error.resource, "id": error.resource_id},
        )

    @app.errorhandler(ReconciliationFailure)
    def _handle_reconciliation(error: ReconciliationFailure):
        return api_error(
            E.CONFLICT_STATE, str(error),
            details={"entity": error.entity, "id": error.entity_id},
        )

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(get_config(config_name))

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing and acting-role context ───────────────────────────
    init_request_timing(app)
    init_session_context(app)

    # ── Role capability table and task board cache ──────────────────────
    init_permission_gate(app)
    init_board_cache(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from qaboard.models import checklist as _checklist_models  # noqa: F401
    from qaboard.models import project as _project_models      # noqa: F401
    from qaboard.models import task as _task_models            # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if config_name != "production":
        if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in \
                app.config["SQLALCHEMY_DATABASE_URI"]:
            os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from qaboard.blueprints.checklist_bp import checklist_bp
    from qaboard.blueprints.health_bp import health_bp
    from qaboard.blueprints.project_bp import project_bp
    from qaboard.blueprints.task_bp import task_bp

    app.register_blueprint(project_bp)
    app.register_blueprint(checklist_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    _register_error_handlers(app)

    return app
