"""Tests for raffle entries and their ledger debits."""

import asyncio
from datetime import timedelta

import pytest

from core.exceptions import (
    AboveMaximumError,
    BelowMinimumError,
    CapacityExceededError,
    InsufficientBalanceError,
    InvalidTicketCountError,
    NotFoundError,
    RaffleEndedError,
    RaffleNotActiveError,
    RaffleNotYetOpenError,
)
from database.base_repository import BaseRepository
from database.repositories import EntryRepository
from services import EntryService, LedgerService, RaffleRegistry
from utils.timeutils import to_iso, utcnow


async def _entry_rows(raffle_id):
    return await BaseRepository.fetch_all("SELECT * FROM raffle_entries WHERE raffle_id=?", (raffle_id,))


async def test_entry_debits_exactly_the_ticket_count(make_user, make_raffle):
    user_id = await make_user(balance=50)
    raffle = await make_raffle()

    result = await EntryService.enter_raffle(user_id, raffle["id"], 20)

    assert result["new_balance"] == 30
    assert result["entry"]["raffle_id"] == raffle["id"]
    assert result["entry"]["ticket_count"] == 20
    assert result["entry"]["entered_at"].endswith("Z")
    assert await LedgerService.balance(user_id) == 30
    assert sum(row["ticket_count"] for row in await _entry_rows(raffle["id"])) == 20


async def test_entry_links_to_its_debit(make_user, make_raffle):
    user_id = await make_user(balance=10)
    raffle = await make_raffle()
    result = await EntryService.enter_raffle(user_id, raffle["id"], 4)

    row = await BaseRepository.fetch_one(
        """
        SELECT l.amount, l.kind, l.raffle_id, l.description
        FROM raffle_entries e JOIN ledger_entries l ON l.id = e.ledger_entry_id
        WHERE e.id=?
        """,
        (result["entry"]["id"],),
    )
    assert row["amount"] == -4
    assert row["kind"] == "raffle_entry"
    assert row["raffle_id"] == raffle["id"]
    assert raffle["title"] in row["description"]


async def test_entry_updates_raffle_totals(make_user, make_raffle):
    alice = await make_user("alice@example.com", balance=10)
    bob = await make_user("bob@example.com", balance=10)
    raffle = await make_raffle()

    await EntryService.enter_raffle(alice, raffle["id"], 3)
    await EntryService.enter_raffle(alice, raffle["id"], 2)
    await EntryService.enter_raffle(bob, raffle["id"], 1)

    detail = await RaffleRegistry.get_raffle(raffle["id"])
    assert detail["total_entries"] == detail["entry_count"] == 3
    assert detail["total_tickets"] == detail["ticket_count"] == 6
    assert await EntryRepository.user_tickets(alice, raffle["id"]) == 5


async def test_insufficient_balance_writes_nothing(make_user, make_raffle):
    user_id = await make_user(balance=5)
    raffle = await make_raffle()

    with pytest.raises(InsufficientBalanceError) as excinfo:
        await EntryService.enter_raffle(user_id, raffle["id"], 6)

    assert excinfo.value.required == 6
    assert excinfo.value.available == 5
    assert excinfo.value.to_dict()["available"] == 5
    assert await LedgerService.balance(user_id) == 5
    assert await _entry_rows(raffle["id"]) == []
    assert (await RaffleRegistry.get_raffle(raffle["id"]))["total_tickets"] == 0


@pytest.mark.parametrize("tickets", [0, -3, True, 2.0, "5", None])
async def test_ticket_count_must_be_positive_integer(make_user, make_raffle, tickets):
    user_id = await make_user(balance=10)
    raffle = await make_raffle()
    with pytest.raises(InvalidTicketCountError):
        await EntryService.enter_raffle(user_id, raffle["id"], tickets)


async def test_ticket_count_checked_before_raffle_lookup(make_user):
    user_id = await make_user(balance=10)
    with pytest.raises(InvalidTicketCountError):
        await EntryService.enter_raffle(user_id, 999, 0)


async def test_unknown_raffle(make_user):
    user_id = await make_user(balance=10)
    with pytest.raises(NotFoundError):
        await EntryService.enter_raffle(user_id, 999, 1)


async def test_coming_soon_raffle_is_not_open(make_user, make_raffle):
    user_id = await make_user(balance=10)
    raffle = await make_raffle(status="coming_soon")
    with pytest.raises(RaffleNotYetOpenError):
        await EntryService.enter_raffle(user_id, raffle["id"], 1)


async def test_cancelled_raffle_is_not_active(make_user, make_raffle):
    user_id = await make_user(balance=10)
    raffle = await make_raffle()
    await RaffleRegistry.update_raffle(raffle["id"], {"status": "cancelled"})
    with pytest.raises(RaffleNotActiveError) as excinfo:
        await EntryService.enter_raffle(user_id, raffle["id"], 1)
    assert not isinstance(excinfo.value, RaffleNotYetOpenError)


async def test_raffle_past_draw_date_has_ended(make_user, make_raffle):
    user_id = await make_user(balance=10)
    raffle = await make_raffle()
    await RaffleRegistry.update_raffle(raffle["id"], {"draw_date": to_iso(utcnow() - timedelta(minutes=1))})
    with pytest.raises(RaffleEndedError):
        await EntryService.enter_raffle(user_id, raffle["id"], 1)


async def test_status_checked_before_draw_date(make_user, make_raffle):
    user_id = await make_user(balance=10)
    raffle = await make_raffle(status="coming_soon")
    await RaffleRegistry.update_raffle(raffle["id"], {"draw_date": to_iso(utcnow() - timedelta(minutes=1))})
    with pytest.raises(RaffleNotYetOpenError):
        await EntryService.enter_raffle(user_id, raffle["id"], 1)


async def test_per_entry_bounds(make_user, make_raffle):
    user_id = await make_user(balance=100)
    raffle = await make_raffle(min_tickets=5, max_tickets=10)

    with pytest.raises(BelowMinimumError):
        await EntryService.enter_raffle(user_id, raffle["id"], 4)
    with pytest.raises(AboveMaximumError):
        await EntryService.enter_raffle(user_id, raffle["id"], 11)

    result = await EntryService.enter_raffle(user_id, raffle["id"], 10)
    assert result["new_balance"] == 90


async def test_bounds_checked_before_balance(make_user, make_raffle):
    user_id = await make_user(balance=0)
    raffle = await make_raffle(min_tickets=5)
    with pytest.raises(BelowMinimumError):
        await EntryService.enter_raffle(user_id, raffle["id"], 1)


async def test_ticket_capacity_across_entries(make_user, make_raffle):
    alice = await make_user("alice@example.com", balance=100)
    bob = await make_user("bob@example.com", balance=100)
    raffle = await make_raffle(ticket_capacity=10)

    await EntryService.enter_raffle(alice, raffle["id"], 7)
    with pytest.raises(CapacityExceededError) as excinfo:
        await EntryService.enter_raffle(bob, raffle["id"], 4)
    assert excinfo.value.extra["remaining"] == 3

    await EntryService.enter_raffle(bob, raffle["id"], 3)
    assert (await RaffleRegistry.get_raffle(raffle["id"]))["ticket_count"] == 10
    assert await LedgerService.balance(bob) == 97


async def test_concurrent_full_balance_entries_allow_one(make_user, make_raffle):
    user_id = await make_user(balance=10)
    first = await make_raffle(title="First")
    second = await make_raffle(title="Second")

    results = await asyncio.gather(
        EntryService.enter_raffle(user_id, first["id"], 10),
        EntryService.enter_raffle(user_id, second["id"], 10),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if isinstance(r, InsufficientBalanceError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert await LedgerService.balance(user_id) == 0


async def test_list_entries_filters(make_user, make_raffle):
    user_id = await make_user(balance=20)
    open_raffle = await make_raffle(title="Open")
    closed = await make_raffle(title="Closed")
    await EntryService.enter_raffle(user_id, open_raffle["id"], 2)
    await EntryService.enter_raffle(user_id, closed["id"], 3)
    await RaffleRegistry.update_raffle(closed["id"], {"status": "cancelled"})

    everything = await EntryService.list_entries(user_id)
    active = await EntryService.list_entries(user_id, active_only=True)

    assert {e["raffle"]["title"] for e in everything} == {"Open", "Closed"}
    assert [e["raffle"]["title"] for e in active] == ["Open"]
    assert await EntryService.list_entries(user_id, won_only=True) == []
