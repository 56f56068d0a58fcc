# backend/billtracker/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .errors import BillTrackerError
from .extensions import db, migrate
from .responses import error_response, fail


def create_app(test_config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config is not None:
        if isinstance(test_config, dict):
            app.config.update(test_config)
        else:
            app.config.from_object(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services import notification_service
    notification_service.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.transactions import expenses_bp, incomes_bp
    from .routes.reimbursements import reimbursements_bp
    from .routes.payments import payments_bp
    from .routes.workflow import workflow_bp
    from .routes.audit import audit_bp
    from .routes.notifications import notifications_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(incomes_bp)
    app.register_blueprint(reimbursements_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(workflow_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    @app.errorhandler(BillTrackerError)
    def handle_domain_error(exc):
        return error_response(exc)

    @app.errorhandler(404)
    def handle_not_found(exc):
        return fail("ไม่พบข้อมูลที่ร้องขอ", "NOT_FOUND", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return fail("Method not allowed", "METHOD_NOT_ALLOWED", 405)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
