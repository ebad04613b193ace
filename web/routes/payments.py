"""Checkout creation and the signed payment webhook."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from services import run_coroutine_sync
from web.helpers import get_services, json_body


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.route("/create-checkout", methods=["POST"])
@login_required
def create_checkout():
    data = json_body()
    pack_type = data.get("pack_type") or data.get("pack_id")
    session = run_coroutine_sync(get_services().gateway.create_checkout_session(current_user.id, pack_type))
    return jsonify(session)


@payments_bp.route("/create-subscription", methods=["POST"])
@login_required
def create_subscription():
    session = run_coroutine_sync(get_services().gateway.create_subscription_session(current_user.id))
    return jsonify(session)


@payments_bp.route("/webhook", methods=["POST"])
def webhook():
    billing = get_services().billing
    # Signature covers the raw bytes, so the body is never re-serialized
    event = billing.verify_and_parse(request.get_data(), request.headers.get("Stripe-Signature"))
    outcome = run_coroutine_sync(billing.handle_event(event))
    return jsonify({"received": True, "outcome": outcome})
