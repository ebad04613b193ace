"""Route registration for the Flask app."""

from __future__ import annotations

from flask import Flask

from .admin import admin_bp
from .auth import auth_bp
from .health import health_bp
from .payments import payments_bp
from .raffles import raffles_bp
from .tickets import ads_bp, tickets_bp
from .user import user_bp


def register_routes(app: Flask) -> None:
    app.register_blueprint(auth_bp)
    app.register_blueprint(raffles_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(tickets_bp)
    app.register_blueprint(ads_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(health_bp)
