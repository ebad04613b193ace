"""Public raffle listing, detail and entry endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from core import RaffleDefaults
from services import EntryService, RaffleRegistry, run_coroutine_sync
from web.auth import optional_user_id
from web.helpers import bool_arg, int_arg, json_body


raffles_bp = Blueprint("raffles", __name__, url_prefix="/api/raffles")


@raffles_bp.route("", methods=["GET"])
def list_raffles():
    raffles = run_coroutine_sync(RaffleRegistry.list_raffles(
        status=request.args.get("status") or None,
        category=request.args.get("category") or None,
        featured=bool_arg("featured"),
        limit=int_arg("limit", RaffleDefaults.LIST_LIMIT),
    ))
    return jsonify({"count": len(raffles), "raffles": raffles})


@raffles_bp.route("/active", methods=["GET"])
def list_active():
    raffles = run_coroutine_sync(RaffleRegistry.list_active(
        category=request.args.get("category") or None,
        featured=bool_arg("featured"),
        limit=int_arg("limit", RaffleDefaults.LIST_LIMIT),
    ))
    return jsonify({"count": len(raffles), "raffles": raffles})


@raffles_bp.route("/<int:raffle_id>", methods=["GET"])
def raffle_detail(raffle_id: int):
    raffle = run_coroutine_sync(RaffleRegistry.get_raffle(raffle_id))
    user_id = optional_user_id()
    if user_id is not None:
        raffle["my_tickets"] = run_coroutine_sync(EntryService.tickets_in_raffle(user_id, raffle_id))
    return jsonify({"raffle": raffle})


@raffles_bp.route("/<int:raffle_id>/enter", methods=["POST"])
@login_required
def enter_raffle(raffle_id: int):
    data = json_body()
    tickets = data["tickets"] if "tickets" in data else data.get("ticket_count")
    result = run_coroutine_sync(EntryService.enter_raffle(current_user.id, raffle_id, tickets))
    return jsonify({"message": "Successfully entered raffle", **result})
