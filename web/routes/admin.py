"""Admin API: raffle lifecycle, draws, users and platform statistics."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user

from core import PaginationDefaults
from services import AdminService, LedgerService, RaffleRegistry, run_coroutine_sync
from web.auth import admin_required
from web.helpers import get_services, int_arg, json_body


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/raffles", methods=["POST"])
@admin_required
def create_raffle():
    raffle = run_coroutine_sync(RaffleRegistry.create_raffle(json_body()))
    return jsonify({"message": "Raffle created successfully", "raffle": raffle}), 201


@admin_bp.route("/raffles/<int:raffle_id>", methods=["PUT"])
@admin_required
def update_raffle(raffle_id: int):
    raffle = run_coroutine_sync(RaffleRegistry.update_raffle(raffle_id, json_body()))
    return jsonify({"message": "Raffle updated successfully", "raffle": raffle})


@admin_bp.route("/raffles/<int:raffle_id>", methods=["DELETE"])
@admin_required
def delete_raffle(raffle_id: int):
    run_coroutine_sync(RaffleRegistry.delete_raffle(raffle_id))
    return jsonify({"message": "Raffle deleted successfully"})


@admin_bp.route("/raffles/<int:raffle_id>/draw", methods=["POST"])
@admin_required
def draw_winner(raffle_id: int):
    result = run_coroutine_sync(get_services().lottery.draw(raffle_id))
    return jsonify({"message": "Winner selected successfully", **result})


@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    page = int_arg("page", 1)
    per_page = int_arg("per_page", PaginationDefaults.PER_PAGE)
    return jsonify(run_coroutine_sync(AdminService.list_users(page, per_page)))


@admin_bp.route("/users/<int:user_id>/adjust", methods=["POST"])
@admin_required
def adjust_balance(user_id: int):
    data = json_body()
    result = run_coroutine_sync(LedgerService.admin_adjust(
        user_id, data.get("amount"), data.get("reason"), current_user.email,
    ))
    return jsonify({"message": "Balance adjusted", **result})


@admin_bp.route("/stats", methods=["GET"])
@admin_required
def stats():
    return jsonify(run_coroutine_sync(AdminService.platform_stats()))
