import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
cache = Cache()
migrate = Migrate()


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)

    # Import and register blueprints
    from pickpool.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from pickpool.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app, config_name)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from pickpool.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    return app


def show_config_warnings(app, config_name):
    """Log configuration warnings and status"""
    logger.info(f"Pick pool starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not app.config.get("ODDS_API_KEY"):
        logger.warning("ODDS_API_KEY not set - feed sync is unavailable")

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        location = "in-memory" if "memory" in db_url else db_url.split("///")[-1]
        logger.info(f"Using SQLite database ({location})")
    elif "postgresql" in db_url:
        # Never log credentials
        logger.info(f"Using PostgreSQL database at {db_url.rsplit('@', 1)[-1]}")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )


def register_error_handlers(app):
    """Register global JSON error handlers"""
    from pickpool.exceptions import (
        FeedUnavailableError,
        InvalidStateError,
        NotFoundError,
    )

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.errorhandler(NotFoundError)
    def handle_not_found(error):
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(InvalidStateError)
    def handle_invalid_state(error):
        app.logger.warning(f"Invalid state: {error} - Path: {request.path}")
        return jsonify({"error": str(error)}), 409

    @app.errorhandler(FeedUnavailableError)
    def handle_feed_unavailable(error):
        app.logger.error(f"Odds feed unavailable: {error}")
        return jsonify({"error": "Odds feed unavailable", "detail": str(error)}), 503

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if error.code == 400:
            app.logger.warning(
                f"400 Bad Request: {error.description} - Path: {request.path} - Method: {request.method}"
            )
        return jsonify({"error": error.description or error.name}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


from pickpool import models  # noqa: F401, E402 - imported for model registration
