"""Signup and login endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify

from services import run_coroutine_sync
from web.helpers import get_services, json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/signup", methods=["POST"])
@auth_bp.route("/register", methods=["POST"])
def signup():
    result = run_coroutine_sync(get_services().auth.signup(json_body()))
    return jsonify({"message": "Account created successfully", **result}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    result = run_coroutine_sync(get_services().auth.login(data.get("email"), data.get("password")))
    return jsonify({"message": "Login successful", **result})
