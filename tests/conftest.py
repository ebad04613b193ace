"""Pytest configuration and fixtures."""

from dataclasses import replace
from datetime import timedelta

import pytest

from config import load_config
from core import LedgerKind
from database.connection import close_db_pool, init_db_pool
from database.migrations import run_migrations
from database.repositories import UserRepository
from services import LedgerService, RaffleRegistry, run_coroutine_sync
from utils.timeutils import to_db, to_iso, utcnow
from web import create_app

ADMIN_EMAIL = "admin@example.com"
WEBHOOK_SECRET = "whsec_test_secret"
ADGATE_SECRET = "adgate_test_secret"


@pytest.fixture
async def db(tmp_path):
    """Fresh SQLite database with the schema applied."""
    pool = await init_db_pool(str(tmp_path / "raffles.sqlite"), pool_size=4, busy_timeout_ms=5000)
    await run_migrations(pool)
    yield pool
    await close_db_pool()


@pytest.fixture
def make_user(db):
    """Factory creating a user, optionally with a starting ticket balance."""
    async def _make(email="player@example.com", balance=0, role="user"):
        user_id = await UserRepository.create(
            email=email,
            username=email.split("@")[0].replace(".", "_"),
            password_hash="not-a-real-hash",
            first_name="Test",
            last_name="Player",
            date_of_birth="1990-01-01",
            role=role,
            created_at=to_db(utcnow()),
        )
        if balance:
            await LedgerService.credit(user_id, balance, LedgerKind.PURCHASE, "Starting tickets")
        return user_id
    return _make


@pytest.fixture
def make_raffle(db):
    """Factory creating an active raffle drawing in three days."""
    async def _make(**overrides):
        data = {
            "title": "1999 Base Set Charizard",
            "category": "pokemon",
            "value": 450.0,
            "image_url": "https://images.example.com/charizard.png",
            "draw_date": to_iso(utcnow() + timedelta(days=3)),
        }
        data.update(overrides)
        return await RaffleRegistry.create_raffle(data)
    return _make


@pytest.fixture
def app(tmp_path):
    config = replace(
        load_config(),
        environment="testing",
        debug=False,
        secret_key="test-secret-key",
        admin_email=ADMIN_EMAIL,
        database_path=str(tmp_path / "api.sqlite"),
        db_pool_size=4,
        ad_daily_limit=5,
        subscription_bonus_tickets=100,
        stripe_secret_key="sk_test_key",
        stripe_webhook_secret=WEBHOOK_SECRET,
        frontend_url="https://vault.example.com",
        adgate_secret=ADGATE_SECRET,
    )
    app = create_app(config, testing=True)
    yield app
    run_coroutine_sync(close_db_pool())


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signup(client):
    """Register through the API and return ``(token, user)``."""
    def _signup(email="player@example.com", username=None, **overrides):
        payload = {
            "email": email,
            "password": "correct-horse-battery",
            "username": username or email.split("@")[0].replace(".", "_"),
            "first_name": "Test",
            "last_name": "Player",
            "date_of_birth": "1990-05-17",
        }
        payload.update(overrides)
        response = client.post("/api/auth/signup", json=payload)
        assert response.status_code == 201, response.get_json()
        body = response.get_json()
        return body["token"], body["user"]
    return _signup


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bearer():
    return auth_header
