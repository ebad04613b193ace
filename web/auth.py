"""Bearer-token authentication for the JSON API.

Flask-Login resolves ``current_user`` from the ``Authorization: Bearer``
header on every request through a request loader; there is no session
cookie. Public endpoints read ``current_user`` and simply see an anonymous
user when the credential is missing or invalid.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Dict, Optional

from flask import current_app, g
from flask_login import LoginManager, UserMixin, current_user

from core import get_logger
from core.exceptions import AuthenticationError, AuthorizationError
from services import run_coroutine_sync

logger = get_logger(__name__)

login_manager = LoginManager()


class AuthenticatedUser(UserMixin):
    """Identity context of the caller."""

    def __init__(self, identity: Dict[str, Any]) -> None:
        self.id = identity["id"]
        self.email = identity["email"]
        self.display_name = identity["display_name"]
        self.ticket_balance = identity["ticket_balance"]
        self.subscription_tier = identity["subscription_tier"]
        self.is_admin = identity["is_admin"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "ticket_balance": self.ticket_balance,
            "subscription_tier": self.subscription_tier,
            "is_admin": self.is_admin,
        }


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def init_login_manager(app) -> None:
    """Attach the token request loader to ``app``."""
    login_manager.init_app(app)
    login_manager.session_protection = None

    @login_manager.request_loader
    def load_user_from_request(request) -> Optional[AuthenticatedUser]:
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return None
        auth = current_app.extensions["raffle_services"].auth
        try:
            identity = run_coroutine_sync(auth.resolve_identity(token))
        except AuthenticationError as exc:
            # Kept for the unauthorized handler; optional-auth routes ignore it
            g.auth_error = exc
            return None
        return AuthenticatedUser(identity)

    @login_manager.unauthorized_handler
    def unauthorized():
        raise g.pop("auth_error", None) or AuthenticationError("Access token required")


def admin_required(view):
    """Require an authenticated caller whose role is admin."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not current_user.is_admin:
            logger.warning("Non-admin user %s denied access to admin route", current_user.id)
            raise AuthorizationError()
        return view(*args, **kwargs)
    return wrapper


def optional_user_id() -> Optional[int]:
    return current_user.id if current_user.is_authenticated else None
