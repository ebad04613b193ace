"""Flask application factory for the raffle JSON API."""

from __future__ import annotations

from flask import Flask, jsonify, request
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from werkzeug.exceptions import HTTPException

from core.exceptions import ApplicationError
from database.connection import init_db_pool
from database.migrations import run_migrations
from services import build_services, run_coroutine_sync, start_background_loop
from web.auth import init_login_manager
from web.config_middleware import (
    configure_app,
    setup_extensions,
    setup_security_headers,
    setup_metrics,
)
from web.routes import register_routes


def create_app(config, testing=False) -> Flask:
    """Create and configure Flask application.

    Args:
        config: Application configuration
        testing: Whether running in testing mode

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Configure application
    configure_app(app, config, testing)

    # Setup middleware
    setup_extensions(app)
    setup_security_headers(app)
    setup_metrics(app)

    # Services and storage
    app.extensions["raffle_services"] = build_services(config)
    _init_database(config)

    # Initialize authentication
    init_login_manager(app)

    # Register routes
    register_routes(app)

    # Setup additional handlers
    _setup_routes(app)
    _setup_error_handlers(app)

    return app


def _init_database(config) -> None:
    """Open the pool on the background loop and apply the schema."""
    start_background_loop()
    pool = run_coroutine_sync(init_db_pool(
        config.database_path,
        pool_size=config.db_pool_size,
        busy_timeout_ms=config.db_busy_timeout,
    ))
    run_coroutine_sync(run_migrations(pool))


def _setup_routes(app: Flask) -> None:
    """Setup basic application routes.

    Args:
        app: Flask application instance
    """
    @app.route('/metrics')
    def metrics():
        """Expose Prometheus metrics."""
        data = generate_latest()
        return data, 200, {'Content-Type': CONTENT_TYPE_LATEST}


def _setup_error_handlers(app: Flask) -> None:
    """Translate exceptions into JSON error bodies.

    Args:
        app: Flask application instance
    """
    @app.errorhandler(ApplicationError)
    def application_error(error: ApplicationError):
        if error.status_code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        code = (error.name or "error").lower().replace(" ", "_")
        return jsonify({"error": error.description, "code": code}), error.code

    @app.errorhandler(Exception)
    def internal_error(error: Exception):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error", "code": "internal"}), 500
