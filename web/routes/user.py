"""Authenticated user profile and history endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from core import PaginationDefaults
from services import AuthService, EntryService, LedgerService, run_coroutine_sync
from web.helpers import int_arg, json_body


user_bp = Blueprint("user", __name__, url_prefix="/api/user")


@user_bp.route("/profile", methods=["GET"])
@user_bp.route("/me", methods=["GET"])
@login_required
def profile():
    return jsonify({"user": run_coroutine_sync(AuthService.profile(current_user.id))})


@user_bp.route("/profile", methods=["PUT"])
@user_bp.route("/me", methods=["PUT"])
@login_required
def update_profile():
    user = run_coroutine_sync(AuthService.update_profile(current_user.id, json_body()))
    return jsonify({"message": "Profile updated", "user": user})


@user_bp.route("/entries", methods=["GET"])
@login_required
def entries():
    items = run_coroutine_sync(EntryService.list_entries(current_user.id))
    return jsonify({"count": len(items), "entries": items})


@user_bp.route("/entries/active", methods=["GET"])
@login_required
def active_entries():
    items = run_coroutine_sync(EntryService.list_entries(current_user.id, active_only=True))
    return jsonify({"count": len(items), "entries": items})


@user_bp.route("/wins", methods=["GET"])
@login_required
def wins():
    items = run_coroutine_sync(EntryService.list_entries(current_user.id, won_only=True))
    return jsonify({"count": len(items), "wins": items})


@user_bp.route("/transactions", methods=["GET"])
@login_required
def transactions():
    page = int_arg("page", 1)
    per_page = int_arg("per_page", PaginationDefaults.PER_PAGE)
    return jsonify(run_coroutine_sync(LedgerService.history(current_user.id, page, per_page)))
