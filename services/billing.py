"""Billing bridge: verified payment-processor events into ledger changes.

Every event is applied inside one immediate transaction together with the
record of its id, so a redelivered event is either fully applied once or,
when applying it fails, not recorded at all and safe to retry.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

import aiosqlite
from prometheus_client import Counter

from core import BillingDefaults, LedgerKind, SubscriptionTier, TICKET_PACKAGES, get_logger
from core.exceptions import WebhookVerificationError
from database.base_repository import BaseRepository
from database.repositories import (
    LedgerRepository,
    SubscriptionRepository,
    UserRepository,
    WebhookEventRepository,
)
from utils.timeutils import from_unix, to_db, utcnow

logger = get_logger(__name__)

WEBHOOK_EVENTS = Counter(
    "payment_webhook_events_total",
    "Payment processor events by type and outcome",
    ["event_type", "outcome"],
)

PROCESSED = "processed"
DUPLICATE = "duplicate"
IGNORED = "ignored"

HANDLED_TYPES = frozenset({
    "checkout.session.completed",
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
})


def compute_signature(secret: str, timestamp: int, payload: bytes) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def _parse_signature_header(header: Optional[str]):
    if not header:
        raise WebhookVerificationError("Missing signature header")
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise WebhookVerificationError("Malformed signature header")
        elif key == "v1" and value:
            signatures.append(value)
    if timestamp is None or not signatures:
        raise WebhookVerificationError("Malformed signature header")
    return timestamp, signatures


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _period_bound(subscription: Dict[str, Any], name: str) -> Optional[int]:
    """Period bounds live on the subscription or, in newer API versions, on its items."""
    if subscription.get(name) is not None:
        return int(subscription[name])
    items = (subscription.get("items") or {}).get("data") or []
    if items and items[0].get(name) is not None:
        return int(items[0][name])
    return None


class BillingBridge:
    """Verifies webhook deliveries and applies them to the store."""

    def __init__(self, webhook_secret: str,
                 bonus_tickets: int = BillingDefaults.SUBSCRIPTION_BONUS_TICKETS,
                 tolerance: int = BillingDefaults.SIGNATURE_TOLERANCE_SECONDS) -> None:
        self.webhook_secret = webhook_secret
        self.bonus_tickets = bonus_tickets
        self.tolerance = tolerance

    def verify_and_parse(self, payload: bytes, signature_header: Optional[str],
                         now: Optional[float] = None) -> Dict[str, Any]:
        """Check the ``t=..,v1=..`` signature and decode the event.

        Raises:
            WebhookVerificationError: On any signature, freshness or format failure
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("Webhook secret is not configured")
        timestamp, signatures = _parse_signature_header(signature_header)
        now = time.time() if now is None else now
        if abs(now - timestamp) > self.tolerance:
            raise WebhookVerificationError("Signature timestamp outside tolerance")

        expected = compute_signature(self.webhook_secret, timestamp, payload)
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise WebhookVerificationError()

        try:
            event = json.loads(payload)
        except (UnicodeDecodeError, ValueError):
            raise WebhookVerificationError("Malformed event payload")
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise WebhookVerificationError("Malformed event payload")
        return event

    async def handle_event(self, event: Dict[str, Any]) -> str:
        """Apply a verified event; returns ``processed``, ``duplicate`` or ``ignored``."""
        event_id = str(event["id"])
        event_type = str(event["type"])
        obj = (event.get("data") or {}).get("object") or {}
        now = to_db(utcnow())

        async with BaseRepository.immediate_transaction() as conn:
            if not await WebhookEventRepository.mark_processed(event_id, event_type, now, conn):
                outcome = DUPLICATE
            elif event_type == "checkout.session.completed":
                outcome = await self._checkout_completed(obj, now, conn)
            elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
                outcome = await self._subscription_changed(obj, now, conn)
            elif event_type == "customer.subscription.deleted":
                outcome = await self._subscription_deleted(obj, now, conn)
            else:
                outcome = IGNORED

        label = event_type if event_type in HANDLED_TYPES else "other"
        WEBHOOK_EVENTS.labels(event_type=label, outcome=outcome).inc()
        logger.info("Webhook %s (%s): %s", event_id, event_type, outcome)
        return outcome

    async def _checkout_completed(self, session: Dict[str, Any], now: str, conn: aiosqlite.Connection) -> str:
        if session.get("mode") != "payment":
            return IGNORED
        if session.get("payment_status") not in (None, "paid", "no_payment_required"):
            logger.info("Checkout session %s not paid yet", session.get("id"))
            return IGNORED

        metadata = session.get("metadata") or {}
        user_id = _positive_int(metadata.get("user_id"))
        tickets = _positive_int(metadata.get("tickets"))
        if user_id is None or tickets is None:
            logger.warning("Checkout session %s is missing user or ticket metadata", session.get("id"))
            return IGNORED

        pack_type = metadata.get("pack_type")
        package = TICKET_PACKAGES.get(pack_type)
        if package is not None and package["tickets"] != tickets:
            logger.warning(
                "Checkout session %s claims %d tickets for pack %s; crediting catalogue amount %d",
                session.get("id"), tickets, pack_type, package["tickets"],
            )
            tickets = package["tickets"]

        if await UserRepository.get_by_id(user_id, conn) is None:
            logger.warning("Checkout session %s references unknown user %s", session.get("id"), user_id)
            return IGNORED

        external_ref = session.get("payment_intent") or session.get("id")
        if not external_ref:
            return IGNORED
        label = package["name"] if package else "ticket pack"
        entry_id = await LedgerRepository.append_once(
            user_id, tickets, LedgerKind.PURCHASE.value,
            f"Purchased {label} ({tickets} tickets)", now, external_ref=str(external_ref), conn=conn,
        )
        if entry_id is None:
            return DUPLICATE
        logger.info("Purchase credited: %d tickets to user %s", tickets, user_id)
        return PROCESSED

    async def _subscription_owner(self, subscription: Dict[str, Any], conn: aiosqlite.Connection) -> Optional[int]:
        metadata = subscription.get("metadata") or {}
        user_id = _positive_int(metadata.get("user_id"))
        if user_id is not None:
            user = await UserRepository.get_by_id(user_id, conn)
            return user["id"] if user else None
        existing = await SubscriptionRepository.get_by_external_id(str(subscription.get("id")), conn)
        if existing:
            return existing["user_id"]
        customer = subscription.get("customer")
        if customer:
            user = await UserRepository.get_by_stripe_customer(str(customer), conn)
            if user:
                return user["id"]
        return None

    async def _subscription_changed(self, subscription: Dict[str, Any], now: str, conn: aiosqlite.Connection) -> str:
        sub_id = subscription.get("id")
        user_id = await self._subscription_owner(subscription, conn)
        if not sub_id or user_id is None:
            logger.warning("Subscription %s has no resolvable user", sub_id)
            return IGNORED

        status = str(subscription.get("status") or "")
        period_start = _period_bound(subscription, "current_period_start")
        period_end = _period_bound(subscription, "current_period_end")
        await SubscriptionRepository.upsert(
            user_id, sub_id, status,
            to_db(from_unix(period_start)) if period_start is not None else None,
            to_db(from_unix(period_end)) if period_end is not None else None,
            bool(subscription.get("cancel_at_period_end")),
            now, conn,
        )

        active = status in BillingDefaults.ACTIVE_SUBSCRIPTION_STATUSES
        tier = SubscriptionTier.PREMIUM if active else SubscriptionTier.FREE
        await UserRepository.set_subscription_tier(user_id, tier.value, conn)

        # One bonus per billing period
        if active and period_start is not None and self.bonus_tickets > 0:
            granted = await LedgerRepository.append_once(
                user_id, self.bonus_tickets, LedgerKind.SUBSCRIPTION.value,
                "Monthly Vault Access bonus tickets", now,
                external_ref=f"{sub_id}:{period_start}", conn=conn,
            )
            if granted is not None:
                logger.info("Subscription bonus: %d tickets to user %s", self.bonus_tickets, user_id)
        return PROCESSED

    async def _subscription_deleted(self, subscription: Dict[str, Any], now: str, conn: aiosqlite.Connection) -> str:
        sub_id = subscription.get("id")
        user_id = await self._subscription_owner(subscription, conn)
        if not sub_id or user_id is None:
            logger.warning("Deleted subscription %s has no resolvable user", sub_id)
            return IGNORED
        period_start = _period_bound(subscription, "current_period_start")
        period_end = _period_bound(subscription, "current_period_end")
        await SubscriptionRepository.upsert(
            user_id, sub_id, "cancelled",
            to_db(from_unix(period_start)) if period_start is not None else None,
            to_db(from_unix(period_end)) if period_end is not None else None,
            False, now, conn,
        )
        await UserRepository.set_subscription_tier(user_id, SubscriptionTier.FREE.value, conn)
        logger.info("Subscription %s cancelled for user %s", sub_id, user_id)
        return PROCESSED
