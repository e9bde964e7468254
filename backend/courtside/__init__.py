# backend/courtside/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None, reservation_lookup=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Booking system collaborator (tests pass an in-memory lookup)
    from .reservations import init_reservations
    init_reservations(app, reservation_lookup)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.shifts import shifts_bp
    from .routes.ledger import ledger_bp
    from .routes.checkouts import checkouts_bp
    from .routes.payments import payments_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(checkouts_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(settings_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = f"Content-Type, {app.config['STAFF_ID_HEADER']}"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.logger.debug("Courtside app created (database %s)", app.config["SQLALCHEMY_DATABASE_URI"])
    return app
