"""Performance middleware for Flask application."""

import time

from flask import g, request

from core import get_logger

logger = get_logger(__name__)

SLOW_REQUEST_SECONDS = 1.0


def init_performance_middleware(app):
    """Initialize response timing headers and slow request logging."""

    @app.before_request
    def before_request():
        g.start_time = time.perf_counter()

    @app.after_request
    def after_request(response):
        if hasattr(g, 'start_time'):
            duration = time.perf_counter() - g.start_time
            if duration > SLOW_REQUEST_SECONDS:
                logger.warning("Slow request: %s %s took %.2fs", request.method, request.path, duration)
            response.headers['X-Response-Time'] = f"{duration:.3f}s"
        return response
