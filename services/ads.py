"""Ad reward service: one ticket per watched ad, capped per rolling day."""

from __future__ import annotations

import hashlib
import hmac
from datetime import timedelta
from typing import Any, Dict, Optional

from core import AdDefaults, LedgerKind, get_logger
from core.exceptions import AuthenticationError, DailyLimitReachedError, NotFoundError, ValidationError
from database.base_repository import BaseRepository
from database.repositories import AdViewRepository, LedgerRepository, UserRepository
from utils.timeutils import to_db, utcnow

logger = get_logger(__name__)

WINDOW = timedelta(hours=AdDefaults.WINDOW_HOURS)
CALLBACK_PROVIDER = "adgate"


def callback_signature(secret: str, user_id: str, points: str) -> str:
    """Hex SHA-256 of ``user_id + points + secret`` as sent by the ad network."""
    return hashlib.sha256(f"{user_id}{points}{secret}".encode()).hexdigest()


class AdRewardService:
    """Credits ad rewards while enforcing the trailing-window cap."""

    def __init__(self, daily_limit: int = AdDefaults.DAILY_LIMIT, callback_secret: str = "") -> None:
        self.daily_limit = daily_limit
        self.callback_secret = callback_secret

    async def watch_ad(self, user_id: int, ad_id: Optional[str] = None, provider: str = "internal") -> Dict[str, Any]:
        """Record an ad view and credit its reward.

        The count and both inserts run under one write lock, so parallel
        requests cannot push a user past the cap.

        Raises:
            DailyLimitReachedError: If the user already hit the cap in the window
        """
        now = utcnow()
        async with BaseRepository.immediate_transaction() as conn:
            watched = await AdViewRepository.count_since(user_id, to_db(now - WINDOW), conn)
            if watched >= self.daily_limit:
                raise DailyLimitReachedError(
                    f"Daily limit reached. You can watch {self.daily_limit} ads per day.",
                    ads_watched_today=watched,
                    daily_limit=self.daily_limit,
                )
            timestamp = to_db(now)
            await AdViewRepository.record(
                user_id, timestamp, ad_id=ad_id, provider=provider,
                tickets_awarded=AdDefaults.TICKETS_PER_AD, conn=conn,
            )
            await LedgerRepository.append(
                user_id, AdDefaults.TICKETS_PER_AD, LedgerKind.AD_REWARD.value,
                "Watched ad", timestamp, conn=conn,
            )
            balance = await LedgerRepository.balance(user_id, conn=conn)

        watched += 1
        logger.info("User %s watched ad (%d/%d today)", user_id, watched, self.daily_limit)
        return {
            "tickets_earned": AdDefaults.TICKETS_PER_AD,
            "new_balance": balance,
            "ads_watched_today": watched,
            "ads_remaining_today": max(self.daily_limit - watched, 0),
        }

    async def network_callback(self, user_id: Any, points: Any, signature: Any) -> Dict[str, Any]:
        """Credit an ad completion reported server-to-server by the ad network.

        The reported points are not trusted; each completion is worth one
        ticket and counts against the same daily cap as client-reported views.

        Raises:
            AuthenticationError: If no secret is configured or the signature is wrong
            ValidationError: If ``user_id`` is not a positive integer
            NotFoundError: If the user does not exist
            DailyLimitReachedError: If the user already hit the cap in the window
        """
        user_id = "" if user_id is None else str(user_id)
        points = "" if points is None else str(points)
        if not self.callback_secret or not isinstance(signature, str):
            raise AuthenticationError("Invalid ad network signature")
        expected = callback_signature(self.callback_secret, user_id, points)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            raise AuthenticationError("Invalid ad network signature")

        if not (user_id.isascii() and user_id.isdigit()) or int(user_id) <= 0:
            raise ValidationError("Invalid user_id")
        if await UserRepository.get_by_id(int(user_id)) is None:
            raise NotFoundError("User not found")
        return await self.watch_ad(int(user_id), provider=CALLBACK_PROVIDER)

    async def ad_status(self, user_id: int) -> Dict[str, Any]:
        watched = await AdViewRepository.count_since(user_id, to_db(utcnow() - WINDOW))
        return {
            "can_watch": watched < self.daily_limit,
            "watched_today": watched,
            "remaining": max(self.daily_limit - watched, 0),
            "limit": self.daily_limit,
        }

    async def ad_stats(self, user_id: int) -> Dict[str, Any]:
        watched = await AdViewRepository.count_since(user_id, to_db(utcnow() - WINDOW))
        return {
            "total_ads_watched": await AdViewRepository.count_total(user_id),
            "ads_watched_today": watched,
            "total_tickets_from_ads": await LedgerRepository.sum_by_kind(user_id, LedgerKind.AD_REWARD.value),
            "daily_limit": self.daily_limit,
            "remaining": max(self.daily_limit - watched, 0),
        }
