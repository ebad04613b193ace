"""Application configuration module.

Reads settings from environment variables with sane defaults. A ``.env``
file in the working directory is loaded first.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


DEFAULT_SECRET_KEY = "development_secret_key_must_be_changed_in_production"


def _get_bool(name: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    """Get integer from environment variable with fallback."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_str(name: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.getenv(name, default)


@dataclass(frozen=True)
class Config:
    environment: str
    debug: bool
    web_host: str
    web_port: int
    secret_key: str
    admin_email: str
    database_path: str
    log_folder: str
    max_content_length: int
    db_pool_size: int
    db_busy_timeout: int
    token_max_age_days: int
    ad_daily_limit: int
    subscription_bonus_tickets: int
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_api_base: str
    frontend_url: str
    adgate_secret: str


def load_config() -> Config:
    """Load application configuration from environment variables.

    Returns:
        Config: Application configuration with validated values
    """
    return Config(
        environment=_get_str("ENVIRONMENT", "development"),
        debug=_get_bool("DEBUG", False),
        web_host=_get_str("WEB_HOST", "0.0.0.0"),
        web_port=_get_int("WEB_PORT", 5000),
        secret_key=_get_str("SECRET_KEY", DEFAULT_SECRET_KEY),
        admin_email=_get_str("ADMIN_EMAIL", "").strip().lower(),
        database_path=_get_str("DATABASE_PATH", "data/raffles.sqlite"),
        log_folder=_get_str("LOG_FOLDER", "logs"),
        max_content_length=_get_int("MAX_CONTENT_LENGTH", 1024 * 1024),
        db_pool_size=_get_int("DB_POOL_SIZE", 10),
        db_busy_timeout=_get_int("DB_BUSY_TIMEOUT", 5000),
        token_max_age_days=_get_int("TOKEN_MAX_AGE_DAYS", 30),
        ad_daily_limit=_get_int("AD_DAILY_LIMIT", 5),
        subscription_bonus_tickets=_get_int("SUBSCRIPTION_BONUS_TICKETS", 100),
        stripe_secret_key=_get_str("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=_get_str("STRIPE_WEBHOOK_SECRET", ""),
        stripe_api_base=_get_str("STRIPE_API_BASE", "https://api.stripe.com/v1"),
        frontend_url=_get_str("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        adgate_secret=_get_str("ADGATE_SECRET", ""),
    )
