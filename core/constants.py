"""Application-wide constants and configuration values."""

from __future__ import annotations

from enum import Enum


# Status enums
class RaffleStatus(str, Enum):
    """Raffle lifecycle status."""
    COMING_SOON = "coming_soon"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LedgerKind(str, Enum):
    """Kind of a ticket ledger entry."""
    PURCHASE = "purchase"
    AD_REWARD = "ad_reward"
    RAFFLE_ENTRY = "raffle_entry"
    SUBSCRIPTION = "subscription"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class UserRole(str, Enum):
    """Authorization role stored on the user record."""
    USER = "user"
    ADMIN = "admin"


class SubscriptionTier(str, Enum):
    """Subscription tier of a user."""
    FREE = "free"
    PREMIUM = "premium"


# Database constants
class DatabaseDefaults:
    """Default database configuration."""
    POOL_SIZE = 10
    BUSY_TIMEOUT = 5000  # milliseconds


class AuthDefaults:
    """Identity and token settings."""
    TOKEN_SALT = "raffle-auth-token"
    TOKEN_MAX_AGE_DAYS = 30
    MIN_PASSWORD_LENGTH = 8
    MIN_AGE_YEARS = 18


class AdDefaults:
    """Ad reward limits."""
    DAILY_LIMIT = 5
    WINDOW_HOURS = 24
    TICKETS_PER_AD = 1


class RaffleDefaults:
    """Raffle listing and creation defaults."""
    MIN_TICKETS = 1
    LIST_LIMIT = 100
    MAX_LIST_LIMIT = 500
    DEFAULT_EMOJI = "🎁"


# Presentation emoji per raffle category
CATEGORY_EMOJIS = {
    "pokemon": "⚡",
    "sports": "🏆",
    "baseball": "⚾",
    "basketball": "🏀",
    "football": "🏈",
    "hockey": "🏒",
    "soccer": "⚽",
    "comics": "💥",
    "coins": "🪙",
    "sneakers": "👟",
    "watches": "⌚",
    "video_games": "🎮",
    "toys": "🧸",
    "memorabilia": "🖼️",
}


class PaginationDefaults:
    """Ledger history pagination."""
    PER_PAGE = 50
    MAX_PER_PAGE = 200


class BillingDefaults:
    """Payment processor integration settings."""
    SIGNATURE_TOLERANCE_SECONDS = 300
    SUBSCRIPTION_BONUS_TICKETS = 100
    REQUEST_TIMEOUT_SECONDS = 10
    ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


# One-time ticket packs sold through checkout; prices in cents
TICKET_PACKAGES = {
    "starter": {"name": "Starter Pack", "tickets": 100, "price": 499},
    "power": {"name": "Power Pack", "tickets": 250, "price": 999},
    "premium": {"name": "Premium Pack", "tickets": 750, "price": 1999},
    "elite": {"name": "Elite Pack", "tickets": 3000, "price": 4999},
    "whale": {"name": "Whale Pack", "tickets": 25000, "price": 13999},
}

SUBSCRIPTION_PLAN = {"name": "Vault Access", "price": 799, "interval": "month"}
