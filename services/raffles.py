"""Raffle registry: listing, detail and administrator CRUD."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core import RaffleDefaults, RaffleStatus, get_logger
from core.constants import CATEGORY_EMOJIS
from core.exceptions import (
    ConflictError,
    HasDependentEntriesError,
    NotFoundError,
    ValidationError,
)
from database.base_repository import BaseRepository
from database.models import Raffle
from database.repositories import EntryRepository, RaffleRepository
from utils.timeutils import format_time_remaining, from_db, parse_iso_datetime, to_db, utcnow

logger = get_logger(__name__)

SYSTEM_MANAGED_FIELDS = frozenset({
    "id", "created_at", "updated_at", "total_entries", "total_tickets",
    "winner_user_id", "winner_selected_at",
})
EDITABLE_FIELDS = frozenset({
    "title", "description", "category", "year", "grade", "value", "image_url",
    "status", "draw_date", "min_tickets", "max_tickets", "ticket_capacity", "featured",
})
REQUIRED_ON_CREATE = ("title", "category", "value", "image_url", "draw_date")
STATUSES = {status.value for status in RaffleStatus}


def category_emoji(category: Optional[str]) -> str:
    return CATEGORY_EMOJIS.get((category or "").strip().lower(), RaffleDefaults.DEFAULT_EMOJI)


def present(raffle: Raffle, now=None) -> Dict[str, Any]:
    """Public representation with presentation-only derived fields."""
    now = now or utcnow()
    data = raffle.to_public()
    data["time_remaining"] = format_time_remaining(from_db(raffle.draw_date) - now)
    data["category_emoji"] = category_emoji(raffle.category)
    return data


def _positive_int(name: str, value: Any, allow_none: bool = False) -> Optional[int]:
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def _clean_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and normalize editable raffle fields present in ``data``."""
    fields: Dict[str, Any] = {}
    for name in ("title", "category"):
        if name in data:
            value = data[name]
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{name} must be a non-empty string")
            fields[name] = value.strip() if name == "title" else value.strip().lower()
    for name in ("description", "grade", "image_url"):
        if name in data:
            value = data[name]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{name} must be a string")
            fields[name] = value
    if "year" in data:
        year = data["year"]
        if year is not None and (isinstance(year, bool) or not isinstance(year, int)):
            raise ValidationError("year must be an integer")
        fields["year"] = year
    if "value" in data:
        value = data["value"]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValidationError("value must be a positive number")
        fields["value"] = float(value)
    if "draw_date" in data:
        try:
            fields["draw_date"] = to_db(parse_iso_datetime(data["draw_date"]))
        except (TypeError, ValueError):
            raise ValidationError("draw_date must be an ISO 8601 timestamp")
    if "status" in data:
        if data["status"] not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(STATUSES))}")
        fields["status"] = data["status"]
    if "min_tickets" in data:
        fields["min_tickets"] = _positive_int("min_tickets", data["min_tickets"])
    if "max_tickets" in data:
        fields["max_tickets"] = _positive_int("max_tickets", data["max_tickets"], allow_none=True)
    if "ticket_capacity" in data:
        fields["ticket_capacity"] = _positive_int("ticket_capacity", data["ticket_capacity"], allow_none=True)
    if "featured" in data:
        if not isinstance(data["featured"], bool):
            raise ValidationError("featured must be a boolean")
        fields["featured"] = 1 if data["featured"] else 0
    return fields


def _check_bounds(min_tickets: int, max_tickets: Optional[int]) -> None:
    if max_tickets is not None and max_tickets < min_tickets:
        raise ValidationError("max_tickets must be greater than or equal to min_tickets")


class RaffleRegistry:
    """CRUD over raffle records."""

    @staticmethod
    async def list_raffles(
        status: Optional[str] = None,
        category: Optional[str] = None,
        featured: Optional[bool] = None,
        limit: int = RaffleDefaults.LIST_LIMIT,
        upcoming_only: bool = False,
    ) -> List[Dict[str, Any]]:
        if status and status not in STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(STATUSES))}")
        if category and category.lower() == "all":
            category = None
        limit = max(1, min(limit, RaffleDefaults.MAX_LIST_LIMIT))
        now = utcnow()
        rows = await RaffleRepository.list_filtered(
            status=status,
            category=category.lower() if category else None,
            featured=featured,
            draw_after=to_db(now) if upcoming_only else None,
            limit=limit,
        )
        return [present(Raffle.from_row(row), now) for row in rows]

    @staticmethod
    async def list_active(category: Optional[str] = None, featured: Optional[bool] = None,
                          limit: int = RaffleDefaults.LIST_LIMIT) -> List[Dict[str, Any]]:
        return await RaffleRegistry.list_raffles(
            status=RaffleStatus.ACTIVE.value, category=category, featured=featured,
            limit=limit, upcoming_only=True,
        )

    @staticmethod
    async def get_raffle(raffle_id: int) -> Dict[str, Any]:
        row = await RaffleRepository.get_with_counts(raffle_id)
        if row is None:
            raise NotFoundError("Raffle not found")
        data = present(Raffle.from_row(row))
        data["entry_count"] = row["entry_count"]
        data["ticket_count"] = row["ticket_count"]
        return data

    @staticmethod
    async def create_raffle(data: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(data) - EDITABLE_FIELDS
        if unknown & SYSTEM_MANAGED_FIELDS:
            raise ValidationError(
                "System-managed fields cannot be set: " + ", ".join(sorted(unknown & SYSTEM_MANAGED_FIELDS))
            )
        if unknown:
            raise ValidationError("Unknown fields: " + ", ".join(sorted(unknown)))
        missing = [name for name in REQUIRED_ON_CREATE if data.get(name) in (None, "")]
        if missing:
            raise ValidationError("Missing required fields", missing=missing)

        fields = _clean_fields(data)
        fields.setdefault("status", RaffleStatus.ACTIVE.value)
        if fields["status"] not in (RaffleStatus.ACTIVE.value, RaffleStatus.COMING_SOON.value):
            raise ValidationError("New raffles must be 'active' or 'coming_soon'")
        fields.setdefault("min_tickets", RaffleDefaults.MIN_TICKETS)
        fields.setdefault("featured", 0)
        _check_bounds(fields["min_tickets"], fields.get("max_tickets"))

        raffle_id = await RaffleRepository.create(fields, to_db(utcnow()))
        logger.info("Raffle %s created: %s", raffle_id, fields["title"])
        return await RaffleRegistry.get_raffle(raffle_id)

    @staticmethod
    async def update_raffle(raffle_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        managed = set(data) & SYSTEM_MANAGED_FIELDS
        if managed:
            raise ValidationError(
                "System-managed fields cannot be modified: " + ", ".join(sorted(managed))
            )
        unknown = set(data) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unknown fields: " + ", ".join(sorted(unknown)))
        if not data:
            raise ValidationError("No updates provided")
        fields = _clean_fields(data)
        if fields.get("status") == RaffleStatus.COMPLETED.value:
            raise ValidationError("A raffle can only be completed by drawing a winner")

        async with BaseRepository.immediate_transaction() as conn:
            row = await RaffleRepository.get(raffle_id, conn)
            if row is None:
                raise NotFoundError("Raffle not found")
            current = Raffle.from_row(row)
            if (current.status == RaffleStatus.COMPLETED.value
                    and "status" in fields and fields["status"] != current.status):
                raise ConflictError("Status of a completed raffle cannot change")
            _check_bounds(
                fields.get("min_tickets", current.min_tickets),
                fields.get("max_tickets", current.max_tickets),
            )
            await RaffleRepository.update(raffle_id, fields, to_db(utcnow()), conn)

        logger.info("Raffle %s updated: %s", raffle_id, ", ".join(sorted(fields)))
        return await RaffleRegistry.get_raffle(raffle_id)

    @staticmethod
    async def delete_raffle(raffle_id: int) -> None:
        async with BaseRepository.immediate_transaction() as conn:
            if await RaffleRepository.get(raffle_id, conn) is None:
                raise NotFoundError("Raffle not found")
            entries, _ = await EntryRepository.count_for_raffle(raffle_id, conn)
            if entries:
                raise HasDependentEntriesError()
            await RaffleRepository.delete(raffle_id, conn)
        logger.info("Raffle %s deleted", raffle_id)
