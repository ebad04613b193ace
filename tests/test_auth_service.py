"""Tests for signup, login and token verification."""

import asyncio
import time
from datetime import date, timedelta
from unittest import mock

import pytest

from core.exceptions import (
    AuthenticationError,
    DuplicateAccountError,
    UserNotFoundError,
    ValidationError,
)
from core import LedgerKind
from database.repositories import UserRepository
from services import AuthService, LedgerService


def _payload(**overrides):
    data = {
        "email": "Player@Example.com",
        "password": "correct-horse-battery",
        "username": "player_one",
        "first_name": "Pat",
        "last_name": "Player",
        "date_of_birth": "1990-05-17",
    }
    data.update(overrides)
    return data


@pytest.fixture
def auth():
    return AuthService(secret_key="unit-secret", admin_email="admin@example.com")


async def test_signup_returns_token_and_user(db, auth):
    result = await auth.signup(_payload())
    user = result["user"]
    assert user["email"] == "player@example.com"
    assert user["display_name"] == "Pat Player"
    assert user["ticket_balance"] == 0
    assert user["is_admin"] is False
    assert "password_hash" not in user
    assert auth.verify_token(result["token"]) == user["id"]


async def test_signup_hashes_password(db, auth):
    result = await auth.signup(_payload())
    row = await UserRepository.get_by_id(result["user"]["id"])
    assert row["password_hash"] != "correct-horse-battery"


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"password": "short"},
        {"username": "ab"},
        {"username": "has space"},
        {"first_name": "  "},
        {"last_name": None},
        {"date_of_birth": "17/05/1990"},
    ],
)
async def test_signup_validation(db, auth, overrides):
    with pytest.raises(ValidationError):
        await auth.signup(_payload(**overrides))


async def test_signup_requires_adult(db, auth):
    underage = (date.today() - timedelta(days=17 * 365)).isoformat()
    with pytest.raises(ValidationError):
        await auth.signup(_payload(date_of_birth=underage))


async def test_duplicate_email(db, auth):
    await auth.signup(_payload())
    with pytest.raises(DuplicateAccountError):
        await auth.signup(_payload(email="PLAYER@example.com", username="someone_else"))


async def test_duplicate_username_is_case_insensitive(db, auth):
    await auth.signup(_payload())
    with pytest.raises(DuplicateAccountError):
        await auth.signup(_payload(email="other@example.com", username="PLAYER_ONE"))


async def test_admin_role_from_configured_email(db, auth):
    result = await auth.signup(_payload(email="Admin@Example.com", username="boss"))
    assert result["user"]["is_admin"] is True


async def test_login_with_valid_credentials(db, auth):
    created = await auth.signup(_payload())
    await LedgerService.credit(created["user"]["id"], 40, LedgerKind.PURCHASE, "Pack")

    result = await auth.login("player@example.com", "correct-horse-battery")
    assert result["user"]["id"] == created["user"]["id"]
    assert result["user"]["ticket_balance"] == 40
    assert result["user"]["last_login"] is not None


@pytest.mark.parametrize("email, password", [
    ("player@example.com", "wrong-password"),
    ("nobody@example.com", "correct-horse-battery"),
])
async def test_login_rejects_bad_credentials(db, auth, email, password):
    await auth.signup(_payload())
    with pytest.raises(AuthenticationError) as excinfo:
        await auth.login(email, password)
    assert excinfo.value.message == "Invalid email or password"


async def test_login_promotes_configured_admin(db):
    await AuthService("unit-secret").signup(_payload(email="admin@example.com", username="boss"))
    promoted = await AuthService("unit-secret", admin_email="admin@example.com").login(
        "admin@example.com", "correct-horse-battery"
    )
    assert promoted["user"]["is_admin"] is True


def test_verify_token_rejects_missing_and_tampered(auth):
    with pytest.raises(AuthenticationError):
        auth.verify_token(None)
    token = auth.issue_token(7)
    # Swap the payload for {"uid": 8} and keep the original signature
    forged = "eyJ1aWQiOjh9" + token[token.index("."):]
    with pytest.raises(AuthenticationError) as excinfo:
        auth.verify_token(forged)
    assert excinfo.value.message == "Invalid token"


def test_token_from_other_secret_is_rejected(auth):
    foreign = AuthService(secret_key="someone-else").issue_token(7)
    with pytest.raises(AuthenticationError):
        auth.verify_token(foreign)


def test_expired_token(auth):
    issued_at = time.time() - 31 * 24 * 3600
    with mock.patch("itsdangerous.timed.time.time", return_value=issued_at):
        token = auth.issue_token(7)
    with pytest.raises(AuthenticationError) as excinfo:
        auth.verify_token(token)
    assert excinfo.value.message == "Token expired"


async def test_resolve_identity(db, auth):
    created = await auth.signup(_payload())
    identity = await auth.resolve_identity(created["token"])
    assert identity == {
        "id": created["user"]["id"],
        "email": "player@example.com",
        "display_name": "Pat Player",
        "ticket_balance": 0,
        "subscription_tier": "free",
        "is_admin": False,
    }


async def test_resolve_identity_for_missing_user(db, auth):
    with pytest.raises(UserNotFoundError) as excinfo:
        await auth.resolve_identity(auth.issue_token(999))
    assert excinfo.value.status_code == 401


async def test_update_profile_changes_names(db, auth):
    created = await auth.signup(_payload())
    profile = await AuthService.update_profile(created["user"]["id"], {"first_name": "Patricia"})
    assert profile["first_name"] == "Patricia"
    assert profile["last_name"] == "Player"
    assert profile["stats"]["total_entries"] == 0

    with pytest.raises(ValidationError):
        await AuthService.update_profile(created["user"]["id"], {"email": "new@example.com"})


async def test_concurrent_signups_with_same_email(db, auth):
    results = await asyncio.gather(
        auth.signup(_payload(username="racer_one")),
        auth.signup(_payload(username="racer_two")),
        return_exceptions=True,
    )

    created = [r for r in results if isinstance(r, dict)]
    duplicates = [r for r in results if isinstance(r, DuplicateAccountError)]
    assert len(created) == 1
    assert len(duplicates) == 1
    assert duplicates[0].message == "Email already registered"


async def test_concurrent_signups_with_same_username(db, auth):
    results = await asyncio.gather(
        auth.signup(_payload(email="first@example.com", username="racer")),
        auth.signup(_payload(email="second@example.com", username="RACER")),
        return_exceptions=True,
    )

    duplicates = [r for r in results if isinstance(r, DuplicateAccountError)]
    assert len(duplicates) == 1
    assert duplicates[0].message == "Username already taken"


async def test_resolve_identity_follows_admin_email_change(db, auth):
    created = await auth.signup(_payload(email="admin@example.com", username="boss"))
    token = created["token"]
    assert (await auth.resolve_identity(token))["is_admin"] is True

    rotated = AuthService(secret_key="unit-secret", admin_email="new-admin@example.com")
    assert (await rotated.resolve_identity(token))["is_admin"] is False
    assert (await UserRepository.get_by_id(created["user"]["id"]))["role"] == "user"
