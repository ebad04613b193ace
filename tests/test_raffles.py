"""Tests for the raffle registry."""

from datetime import timedelta

import pytest

from core.exceptions import ConflictError, HasDependentEntriesError, NotFoundError, ValidationError
from services import EntryService, RaffleRegistry, WeightedLottery
from services.raffles import category_emoji
from utils.timeutils import to_iso, utcnow


async def test_create_applies_defaults(make_raffle):
    raffle = await make_raffle(category="Pokemon")
    assert raffle["status"] == "active"
    assert raffle["min_tickets"] == 1
    assert raffle["max_tickets"] is None
    assert raffle["featured"] is False
    assert raffle["category"] == "pokemon"
    assert raffle["total_entries"] == 0
    assert raffle["winner_user_id"] is None


async def test_derived_presentation_fields(make_raffle):
    raffle = await make_raffle(draw_date=to_iso(utcnow() + timedelta(days=2, hours=4, minutes=30)))
    assert raffle["time_remaining"] in ("2d 4h", "2d 3h")
    assert raffle["category_emoji"] == category_emoji("pokemon")


def test_unknown_category_gets_default_emoji():
    assert category_emoji("stamps") == "🎁"
    assert category_emoji(None) == "🎁"


@pytest.mark.parametrize("missing", ["title", "category", "value", "image_url", "draw_date"])
async def test_create_requires_fields(make_raffle, missing):
    with pytest.raises(ValidationError):
        await make_raffle(**{missing: None})


async def test_create_rejects_system_managed_fields(make_raffle):
    with pytest.raises(ValidationError):
        await make_raffle(total_tickets=500)


async def test_create_only_active_or_coming_soon(make_raffle):
    with pytest.raises(ValidationError):
        await make_raffle(status="completed")
    assert (await make_raffle(status="coming_soon"))["status"] == "coming_soon"


async def test_create_validates_ticket_bounds(make_raffle):
    with pytest.raises(ValidationError):
        await make_raffle(min_tickets=0)
    with pytest.raises(ValidationError):
        await make_raffle(min_tickets=10, max_tickets=5)
    with pytest.raises(ValidationError):
        await make_raffle(ticket_capacity=0)


async def test_list_orders_featured_then_draw_date(make_raffle):
    now = utcnow()
    await make_raffle(title="Late", draw_date=to_iso(now + timedelta(days=9)))
    await make_raffle(title="Soon", draw_date=to_iso(now + timedelta(days=1)))
    await make_raffle(title="Featured", featured=True, draw_date=to_iso(now + timedelta(days=5)))

    titles = [r["title"] for r in await RaffleRegistry.list_raffles()]
    assert titles == ["Featured", "Soon", "Late"]


async def test_list_filters(make_raffle):
    await make_raffle(title="Card", category="pokemon")
    await make_raffle(title="Ball", category="baseball", status="coming_soon")

    assert [r["title"] for r in await RaffleRegistry.list_raffles(category="baseball")] == ["Ball"]
    assert len(await RaffleRegistry.list_raffles(category="all")) == 2
    assert [r["title"] for r in await RaffleRegistry.list_raffles(status="active")] == ["Card"]
    assert len(await RaffleRegistry.list_raffles(limit=1)) == 1
    with pytest.raises(ValidationError):
        await RaffleRegistry.list_raffles(status="bogus")


async def test_list_active_hides_past_draws(make_raffle):
    await make_raffle(title="Upcoming")
    stale = await make_raffle(title="Stale")
    await RaffleRegistry.update_raffle(stale["id"], {"draw_date": to_iso(utcnow() - timedelta(hours=1))})
    assert [r["title"] for r in await RaffleRegistry.list_active()] == ["Upcoming"]


async def test_get_unknown_raffle(db):
    with pytest.raises(NotFoundError):
        await RaffleRegistry.get_raffle(12345)


async def test_update_rejects_system_managed_fields(make_raffle):
    raffle = await make_raffle()
    for field in ("id", "total_entries", "total_tickets", "winner_user_id", "created_at"):
        with pytest.raises(ValidationError):
            await RaffleRegistry.update_raffle(raffle["id"], {field: 1})


async def test_update_rejects_unknown_and_empty(make_raffle):
    raffle = await make_raffle()
    with pytest.raises(ValidationError):
        await RaffleRegistry.update_raffle(raffle["id"], {"colour": "red"})
    with pytest.raises(ValidationError):
        await RaffleRegistry.update_raffle(raffle["id"], {})


async def test_update_cannot_complete_raffle(make_raffle):
    raffle = await make_raffle()
    with pytest.raises(ValidationError):
        await RaffleRegistry.update_raffle(raffle["id"], {"status": "completed"})


async def test_update_changes_fields(make_raffle):
    raffle = await make_raffle()
    updated = await RaffleRegistry.update_raffle(raffle["id"], {"title": "PSA 10 Charizard", "featured": True})
    assert updated["title"] == "PSA 10 Charizard"
    assert updated["featured"] is True
    assert updated["updated_at"] is not None


async def test_completed_raffle_status_is_final(make_user, make_raffle):
    user_id = await make_user(balance=1)
    raffle = await make_raffle()
    await EntryService.enter_raffle(user_id, raffle["id"], 1)
    await WeightedLottery().draw(raffle["id"])

    with pytest.raises(ConflictError):
        await RaffleRegistry.update_raffle(raffle["id"], {"status": "active"})
    updated = await RaffleRegistry.update_raffle(raffle["id"], {"description": "Shipped to winner"})
    assert updated["status"] == "completed"


async def test_delete_refuses_raffle_with_entries(make_user, make_raffle):
    user_id = await make_user(balance=1)
    raffle = await make_raffle()
    await EntryService.enter_raffle(user_id, raffle["id"], 1)

    with pytest.raises(HasDependentEntriesError):
        await RaffleRegistry.delete_raffle(raffle["id"])
    assert (await RaffleRegistry.get_raffle(raffle["id"]))["id"] == raffle["id"]


async def test_delete_raffle_without_entries(make_raffle):
    raffle = await make_raffle()
    await RaffleRegistry.delete_raffle(raffle["id"])
    with pytest.raises(NotFoundError):
        await RaffleRegistry.get_raffle(raffle["id"])
