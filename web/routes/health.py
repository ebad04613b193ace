"""Health check blueprint."""

from __future__ import annotations

from flask import Blueprint, jsonify

from database.base_repository import BaseRepository
from database.connection import get_db_pool
from services import run_coroutine_sync
from utils.timeutils import to_iso, utcnow


health_bp = Blueprint("health", __name__, url_prefix="/api")


@health_bp.route("/health")
def health_check():
    db_pool = get_db_pool()
    run_coroutine_sync(BaseRepository.fetch_value("SELECT 1"))
    return jsonify({
        "status": "ok",
        "timestamp": to_iso(utcnow()),
        "db_pool_size": db_pool.pool_size,
    })
