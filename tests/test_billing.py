"""Tests for webhook verification and event handling."""

import json
import time

import pytest

from core.exceptions import WebhookVerificationError
from database.base_repository import BaseRepository
from database.repositories import SubscriptionRepository, UserRepository
from services import BillingBridge, LedgerService
from services.billing import compute_signature

SECRET = "whsec_unit"


def _signed(event, secret=SECRET, timestamp=None):
    payload = json.dumps(event).encode()
    timestamp = int(time.time()) if timestamp is None else timestamp
    return payload, f"t={timestamp},v1={compute_signature(secret, timestamp, payload)}"


def _checkout_event(event_id, user_id, tickets=100, pack_type="starter", payment_intent="pi_123"):
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": f"cs_{event_id}",
            "mode": "payment",
            "payment_status": "paid",
            "payment_intent": payment_intent,
            "metadata": {"user_id": str(user_id), "pack_type": pack_type, "tickets": str(tickets)},
        }},
    }


def _subscription_event(event_id, user_id, event_type="customer.subscription.updated",
                        status="active", period_start=1_700_000_000):
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": {
            "id": "sub_42",
            "customer": "cus_42",
            "status": status,
            "current_period_start": period_start,
            "current_period_end": period_start + 30 * 86400,
            "cancel_at_period_end": False,
            "metadata": {"user_id": str(user_id)},
        }},
    }


async def _purchases(user_id):
    return await BaseRepository.fetch_value(
        "SELECT COUNT(*) FROM ledger_entries WHERE user_id=? AND kind='purchase'", (user_id,)
    )


async def _tier(user_id):
    return (await UserRepository.get_by_id(user_id))["subscription_tier"]


def test_verify_and_parse_accepts_valid_signature():
    bridge = BillingBridge(SECRET)
    payload, header = _signed({"id": "evt_1", "type": "ping"})
    assert bridge.verify_and_parse(payload, header)["id"] == "evt_1"


def test_verify_rejects_wrong_secret():
    bridge = BillingBridge(SECRET)
    payload, header = _signed({"id": "evt_1", "type": "ping"}, secret="whsec_other")
    with pytest.raises(WebhookVerificationError):
        bridge.verify_and_parse(payload, header)


def test_verify_rejects_tampered_payload():
    bridge = BillingBridge(SECRET)
    payload, header = _signed({"id": "evt_1", "type": "ping"})
    with pytest.raises(WebhookVerificationError):
        bridge.verify_and_parse(payload.replace(b"ping", b"pong"), header)


def test_verify_rejects_stale_timestamp():
    bridge = BillingBridge(SECRET)
    payload, header = _signed({"id": "evt_1", "type": "ping"}, timestamp=int(time.time()) - 301)
    with pytest.raises(WebhookVerificationError):
        bridge.verify_and_parse(payload, header)


@pytest.mark.parametrize("header", [None, "", "v1=abc", "t=notanumber,v1=abc", "t=123"])
def test_verify_rejects_malformed_header(header):
    with pytest.raises(WebhookVerificationError):
        BillingBridge(SECRET).verify_and_parse(b"{}", header)


def test_verify_rejects_non_json_body():
    bridge = BillingBridge(SECRET)
    timestamp = int(time.time())
    payload = b"not json"
    header = f"t={timestamp},v1={compute_signature(SECRET, timestamp, payload)}"
    with pytest.raises(WebhookVerificationError):
        bridge.verify_and_parse(payload, header)


def test_verify_requires_configured_secret():
    payload, header = _signed({"id": "evt_1", "type": "ping"})
    with pytest.raises(WebhookVerificationError):
        BillingBridge("").verify_and_parse(payload, header)


async def test_checkout_completed_credits_purchase(make_user):
    user_id = await make_user()
    outcome = await BillingBridge(SECRET).handle_event(_checkout_event("evt_1", user_id))
    assert outcome == "processed"
    assert await LedgerService.balance(user_id) == 100


async def test_redelivered_event_is_duplicate(make_user):
    user_id = await make_user()
    bridge = BillingBridge(SECRET)
    event = _checkout_event("evt_1", user_id)

    assert await bridge.handle_event(event) == "processed"
    assert await bridge.handle_event(event) == "duplicate"
    assert await _purchases(user_id) == 1
    assert await LedgerService.balance(user_id) == 100


async def test_same_payment_under_new_event_id_credits_once(make_user):
    user_id = await make_user()
    bridge = BillingBridge(SECRET)

    assert await bridge.handle_event(_checkout_event("evt_1", user_id)) == "processed"
    assert await bridge.handle_event(_checkout_event("evt_2", user_id)) == "duplicate"
    assert await _purchases(user_id) == 1


async def test_pack_amount_comes_from_catalogue(make_user):
    user_id = await make_user()
    event = _checkout_event("evt_1", user_id, tickets=99999, pack_type="power")
    await BillingBridge(SECRET).handle_event(event)
    assert await LedgerService.balance(user_id) == 250


async def test_checkout_without_metadata_is_ignored(make_user):
    user_id = await make_user()
    event = _checkout_event("evt_1", user_id)
    event["data"]["object"]["metadata"] = {}
    assert await BillingBridge(SECRET).handle_event(event) == "ignored"
    assert await LedgerService.balance(user_id) == 0


async def test_checkout_for_unknown_user_is_ignored(db):
    assert await BillingBridge(SECRET).handle_event(_checkout_event("evt_1", 4242)) == "ignored"


async def test_subscription_checkout_session_is_ignored(make_user):
    user_id = await make_user()
    event = _checkout_event("evt_1", user_id)
    event["data"]["object"]["mode"] = "subscription"
    assert await BillingBridge(SECRET).handle_event(event) == "ignored"
    assert await LedgerService.balance(user_id) == 0


async def test_unknown_event_type_is_ignored(db):
    event = {"id": "evt_x", "type": "invoice.finalized", "data": {"object": {}}}
    assert await BillingBridge(SECRET).handle_event(event) == "ignored"


async def test_active_subscription_grants_bonus_once_per_period(make_user):
    user_id = await make_user()
    bridge = BillingBridge(SECRET, bonus_tickets=100)

    created = _subscription_event("evt_1", user_id, event_type="customer.subscription.created")
    assert await bridge.handle_event(created) == "processed"
    assert await _tier(user_id) == "premium"
    assert await LedgerService.balance(user_id) == 100

    # Same period, e.g. a cancel_at_period_end toggle
    assert await bridge.handle_event(_subscription_event("evt_2", user_id)) == "processed"
    assert await LedgerService.balance(user_id) == 100

    renewed = _subscription_event("evt_3", user_id, period_start=1_700_000_000 + 30 * 86400)
    await bridge.handle_event(renewed)
    assert await LedgerService.balance(user_id) == 200

    record = await SubscriptionRepository.get_by_external_id("sub_42")
    assert record["status"] == "active"
    assert record["user_id"] == user_id


async def test_incomplete_subscription_stays_free(make_user):
    user_id = await make_user()
    event = _subscription_event("evt_1", user_id, event_type="customer.subscription.created", status="incomplete")
    await BillingBridge(SECRET).handle_event(event)
    assert await _tier(user_id) == "free"
    assert await LedgerService.balance(user_id) == 0


async def test_past_due_subscription_downgrades(make_user):
    user_id = await make_user()
    bridge = BillingBridge(SECRET)
    await bridge.handle_event(_subscription_event("evt_1", user_id))
    await bridge.handle_event(_subscription_event("evt_2", user_id, status="past_due"))
    assert await _tier(user_id) == "free"


async def test_deleted_subscription_returns_to_free(make_user):
    user_id = await make_user()
    bridge = BillingBridge(SECRET)
    await bridge.handle_event(_subscription_event("evt_1", user_id))

    deleted = _subscription_event("evt_2", user_id, event_type="customer.subscription.deleted", status="canceled")
    assert await bridge.handle_event(deleted) == "processed"

    assert await _tier(user_id) == "free"
    assert (await SubscriptionRepository.get_by_external_id("sub_42"))["status"] == "cancelled"
    assert await LedgerService.balance(user_id) == 100


async def test_subscription_owner_found_by_customer_id(make_user):
    user_id = await make_user()
    await UserRepository.set_stripe_customer(user_id, "cus_42")
    event = _subscription_event("evt_1", user_id)
    event["data"]["object"]["metadata"] = {}
    assert await BillingBridge(SECRET).handle_event(event) == "processed"
    assert await _tier(user_id) == "premium"


async def test_subscription_without_owner_is_ignored(db):
    event = _subscription_event("evt_1", 1)
    event["data"]["object"]["metadata"] = {}
    assert await BillingBridge(SECRET).handle_event(event) == "ignored"
