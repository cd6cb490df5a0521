# backend/wms/__init__.py
import logging

from flask import Flask, jsonify, request
from sqlalchemy.orm.exc import StaleDataError

from .config import Config
from .errors import ConcurrencyConflict, WmsError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401
    from .models.immutability import register_immutability_listeners
    register_immutability_listeners()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.stock import stock_bp
    from .routes.orders import orders_bp
    from .routes.production import production_bp
    from .routes.shipping import shipping_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(production_bp)
    app.register_blueprint(shipping_bp)

    @app.errorhandler(WmsError)
    def handle_wms_error(error):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(StaleDataError)
    def handle_stale_data(error):
        db.session.rollback()
        conflict = ConcurrencyConflict("Record was modified by another request; reload and resubmit")
        return jsonify(conflict.to_dict()), conflict.http_status

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("ALLOWED_ORIGINS", set()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Actor-Id, X-Actor-Role"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
