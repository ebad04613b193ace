"""Identity service: signup, login and bearer token handling."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from core import AuthDefaults, UserRole, get_logger
from core.exceptions import (
    AuthenticationError,
    DuplicateAccountError,
    NotFoundError,
    UserNotFoundError,
    ValidationError,
)
from database.base_repository import BaseRepository
from database.models import User
from database.repositories import EntryRepository, UserRepository
from utils.timeutils import age_in_years, parse_iso_date, to_db, utcnow

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")


def _require_text(data: Dict[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def validate_signup(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize and validate a signup payload.

    Raises:
        ValidationError: On the first invalid field
    """
    email = _require_text(data, "email").lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")

    password = data.get("password")
    if not isinstance(password, str) or len(password) < AuthDefaults.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {AuthDefaults.MIN_PASSWORD_LENGTH} characters")

    username = _require_text(data, "username")
    if not USERNAME_RE.match(username):
        raise ValidationError("Username must be 3-30 characters: letters, numbers and underscores")

    first_name = _require_text(data, "first_name")
    last_name = _require_text(data, "last_name")

    try:
        born = parse_iso_date(data.get("date_of_birth"))
    except (TypeError, ValueError):
        raise ValidationError("date_of_birth must be an ISO 8601 date")
    if age_in_years(born) < AuthDefaults.MIN_AGE_YEARS:
        raise ValidationError(f"Must be {AuthDefaults.MIN_AGE_YEARS} or older to register")

    return {
        "email": email,
        "password": password,
        "username": username,
        "first_name": first_name,
        "last_name": last_name,
        "date_of_birth": born.isoformat(),
    }


class AuthService:
    """Account creation, credential checks and token issuing."""

    def __init__(self, secret_key: str, admin_email: str = "",
                 token_max_age_days: int = AuthDefaults.TOKEN_MAX_AGE_DAYS) -> None:
        self._serializer = URLSafeTimedSerializer(secret_key, salt=AuthDefaults.TOKEN_SALT)
        self.admin_email = (admin_email or "").strip().lower()
        self.max_age = token_max_age_days * 24 * 3600

    def role_for(self, email: str) -> str:
        if self.admin_email and email.lower() == self.admin_email:
            return UserRole.ADMIN.value
        return UserRole.USER.value

    def issue_token(self, user_id: int) -> str:
        return self._serializer.dumps({"uid": user_id})

    def verify_token(self, token: Optional[str]) -> int:
        """Return the user id carried by ``token``.

        Raises:
            AuthenticationError: If the token is missing, tampered with or expired
        """
        if not token:
            raise AuthenticationError("Access token required")
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            raise AuthenticationError("Token expired")
        except BadSignature:
            raise AuthenticationError("Invalid token")
        user_id = payload.get("uid") if isinstance(payload, dict) else None
        if not isinstance(user_id, int):
            raise AuthenticationError("Invalid token")
        return user_id

    async def resolve_identity(self, token: Optional[str]) -> Dict[str, Any]:
        """Verify ``token`` and load the identity context of its user."""
        user_id = self.verify_token(token)
        row = await UserRepository.get_identity(user_id)
        if row is None:
            raise UserNotFoundError()
        user = User.from_row(row)
        role = self.role_for(user.email)
        if role != user.role:
            await UserRepository.set_role(user.id, role)
            logger.info("User %s role changed from %s to %s", user.id, user.role, role)
        return {
            "id": user.id,
            "email": user.email,
            "display_name": user.display_name,
            "ticket_balance": int(row["ticket_balance"]),
            "subscription_tier": user.subscription_tier,
            "is_admin": role == UserRole.ADMIN.value,
        }

    async def signup(self, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = validate_signup(data)
        password_hash = generate_password_hash(fields["password"])

        async with BaseRepository.immediate_transaction() as conn:
            taken = await UserRepository.email_or_username_taken(fields["email"], fields["username"], conn)
            if taken == "email":
                raise DuplicateAccountError("Email already registered")
            if taken == "username":
                raise DuplicateAccountError("Username already taken")

            user_id = await UserRepository.create(
                email=fields["email"],
                username=fields["username"],
                password_hash=password_hash,
                first_name=fields["first_name"],
                last_name=fields["last_name"],
                date_of_birth=fields["date_of_birth"],
                role=self.role_for(fields["email"]),
                created_at=to_db(utcnow()),
                conn=conn,
            )
        user = User.from_row(await UserRepository.get_by_id(user_id))
        logger.info("User %s registered (%s)", user_id, user.role)
        return {"token": self.issue_token(user_id), "user": user.to_public(ticket_balance=0)}

    async def login(self, email: Any, password: Any) -> Dict[str, Any]:
        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            raise ValidationError("Email and password are required")
        row = await UserRepository.get_by_email(email.strip().lower())
        if row is None or not check_password_hash(row["password_hash"], password):
            raise AuthenticationError("Invalid email or password")

        role = self.role_for(row["email"])
        await UserRepository.record_login(row["id"], to_db(utcnow()), role)
        identity = await UserRepository.get_identity(row["id"])
        user = User.from_row(identity)
        logger.info("User %s logged in", user.id)
        return {
            "token": self.issue_token(user.id),
            "user": user.to_public(ticket_balance=int(identity["ticket_balance"])),
        }

    @staticmethod
    async def profile(user_id: int) -> Dict[str, Any]:
        row = await UserRepository.get_identity(user_id)
        if row is None:
            raise NotFoundError("User not found")
        data = User.from_row(row).to_public(ticket_balance=int(row["ticket_balance"]))
        summary = await EntryRepository.summary_for_user(user_id)
        data["date_of_birth"] = row["date_of_birth"]
        data["stats"] = {
            "total_entries": summary["total_entries"],
            "tickets_spent": summary["tickets_spent"],
            "active_raffles": summary["active_raffles"],
            "wins": summary["wins"],
        }
        return data

    @staticmethod
    async def update_profile(user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update first/last name; other fields are not editable here."""
        if not any(name in data for name in ("first_name", "last_name")):
            raise ValidationError("No updates provided")
        row = await UserRepository.get_by_id(user_id)
        if row is None:
            raise NotFoundError("User not found")
        first_name = _require_text(data, "first_name") if "first_name" in data else row["first_name"]
        last_name = _require_text(data, "last_name") if "last_name" in data else row["last_name"]
        await UserRepository.update_names(user_id, first_name, last_name)
        return await AuthService.profile(user_id)
