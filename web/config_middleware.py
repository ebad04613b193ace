"""Flask application configuration and middleware setup."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from flask import Flask, g, request
from prometheus_client import Counter, Histogram

from config import DEFAULT_SECRET_KEY

if TYPE_CHECKING:
    from config import Config

# Prometheus metrics
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total number of 5xx responses",
    ["method", "path"],
)


def configure_app(app: Flask, config: Config, testing: bool = False) -> None:
    """Configure Flask application settings.

    Args:
        app: Flask application instance
        config: Application configuration
        testing: Whether running in testing mode
    """
    app.config.update(
        SECRET_KEY=config.secret_key,
        MAX_CONTENT_LENGTH=config.max_content_length,
        DATABASE_PATH=config.database_path,
        ADMIN_EMAIL=config.admin_email,
        TESTING=testing,
    )
    app.json.sort_keys = False

    # Warn if insecure defaults detected
    if config.environment == 'production':
        if config.secret_key == DEFAULT_SECRET_KEY:
            app.logger.warning("SECRET_KEY is the development default; tokens can be forged")
        if not config.stripe_webhook_secret:
            app.logger.warning("STRIPE_WEBHOOK_SECRET is not set; payment webhooks will be rejected")
        if not config.adgate_secret:
            app.logger.warning("ADGATE_SECRET is not set; ad network callbacks will be rejected")
        if not config.admin_email:
            app.logger.warning("ADMIN_EMAIL is not set; no account can reach the admin routes")


def setup_extensions(app: Flask) -> None:
    """Setup middleware that ships as separate modules.

    Args:
        app: Flask application instance
    """
    from web.performance_middleware import init_performance_middleware
    init_performance_middleware(app)


def setup_security_headers(app: Flask) -> None:
    """Setup security headers middleware.

    Args:
        app: Flask application instance
    """
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        # JSON only: nothing may be framed, scripted or sniffed
        response.headers.setdefault('Content-Security-Policy', "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'same-origin')
        return response


def _route_label() -> str:
    return getattr(request.url_rule, 'rule', None) or 'unmatched'


def setup_metrics(app: Flask) -> None:
    """Setup Prometheus metrics middleware.

    Args:
        app: Flask application instance
    """
    @app.before_request
    def before_metrics():
        """Store request start time."""
        g._metrics_start = time.perf_counter()

    @app.after_request
    def after_metrics(response):
        """Record request metrics."""
        start = g.pop('_metrics_start', None)
        if start is not None:
            REQUEST_LATENCY.labels(method=request.method, path=_route_label()).observe(
                time.perf_counter() - start
            )
        if response.status_code >= 500:
            REQUEST_ERRORS.labels(method=request.method, path=_route_label()).inc()
        return response
