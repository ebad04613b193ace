"""Ticket balance, package catalogue and ad reward endpoints."""

from __future__ import annotations

from flask import Blueprint, Response, jsonify, request
from flask_login import current_user, login_required

from core import TICKET_PACKAGES, get_logger
from core.exceptions import ApplicationError
from services import LedgerService, run_coroutine_sync
from web.helpers import get_services, json_body

logger = get_logger(__name__)


tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")
ads_bp = Blueprint("ads", __name__, url_prefix="/api/ads")


@tickets_bp.route("/balance", methods=["GET"])
@login_required
def balance():
    return jsonify({
        "balance": run_coroutine_sync(LedgerService.balance(current_user.id)),
        "subscription_tier": current_user.subscription_tier,
    })


@tickets_bp.route("/packages", methods=["GET"])
def packages():
    return jsonify({
        "packages": [
            {
                "id": pack_id,
                **package,
                "price_display": f"${package['price'] / 100:.2f}",
            }
            for pack_id, package in TICKET_PACKAGES.items()
        ]
    })


@ads_bp.route("/watch", methods=["POST"])
@tickets_bp.route("/watch-ad", methods=["POST"])
@login_required
def watch_ad():
    ad_id = json_body().get("ad_id")
    result = run_coroutine_sync(get_services().ads.watch_ad(
        current_user.id,
        ad_id=str(ad_id) if ad_id is not None else None,
    ))
    return jsonify({"message": "Ticket earned", **result})


@ads_bp.route("/status", methods=["GET"])
@ads_bp.route("/check-limit", methods=["GET"])
@login_required
def ad_status():
    return jsonify(run_coroutine_sync(get_services().ads.ad_status(current_user.id)))


@ads_bp.route("/stats", methods=["GET"])
@login_required
def ad_stats():
    return jsonify(run_coroutine_sync(get_services().ads.ad_stats(current_user.id)))


@ads_bp.route("/callback", methods=["GET", "POST"])
def ad_network_callback():
    """Server-to-server completion notice; the ad network expects "1" or "0"."""
    try:
        run_coroutine_sync(get_services().ads.network_callback(
            request.args.get("user_id"),
            request.args.get("points"),
            request.args.get("signature"),
        ))
    except ApplicationError as exc:
        logger.warning("Ad network callback refused: %s", exc.message)
        return Response("0", status=exc.status_code, mimetype="text/plain")
    return Response("1", mimetype="text/plain")
