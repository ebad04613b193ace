"""Small helpers shared by the API blueprints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app, request

from core.exceptions import ValidationError
from services import Services


def get_services() -> Services:
    return current_app.extensions["raffle_services"]


def json_body() -> Dict[str, Any]:
    """Request JSON object; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def bool_arg(name: str) -> Optional[bool]:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return value.lower() in {"1", "true", "yes", "on"}
