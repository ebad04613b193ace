"""Raffle entry recorder.

An entry and its ledger debit are written together under ``BEGIN IMMEDIATE``:
the balance check, the capacity check and both inserts see one consistent
snapshot, and no other writer can interleave between check and debit.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from prometheus_client import Counter

from core import LedgerKind, RaffleStatus, get_logger
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
from database.models import Raffle, RaffleEntry
from database.repositories import EntryRepository, LedgerRepository, RaffleRepository
from utils.timeutils import db_to_iso, from_db, to_db, utcnow

logger = get_logger(__name__)

TICKETS_ENTERED = Counter(
    "raffle_tickets_entered_total",
    "Tickets debited from balances for raffle entries",
)


def validate_ticket_count(tickets: Any) -> int:
    if isinstance(tickets, bool) or not isinstance(tickets, int) or tickets < 1:
        raise InvalidTicketCountError()
    return tickets


def check_raffle_accepts(raffle: Raffle, tickets: int, now) -> None:
    """Raffle-side preconditions, in the order they are reported."""
    if raffle.status == RaffleStatus.COMING_SOON.value:
        raise RaffleNotYetOpenError()
    if raffle.status != RaffleStatus.ACTIVE.value:
        raise RaffleNotActiveError()
    if now >= from_db(raffle.draw_date):
        raise RaffleEndedError()
    if tickets < raffle.min_tickets:
        raise BelowMinimumError(f"Minimum {raffle.min_tickets} tickets required", minimum=raffle.min_tickets)
    if raffle.max_tickets is not None and tickets > raffle.max_tickets:
        raise AboveMaximumError(f"Maximum {raffle.max_tickets} tickets per entry", maximum=raffle.max_tickets)


class EntryService:
    """Validates and commits raffle entries."""

    @staticmethod
    async def enter_raffle(user_id: int, raffle_id: int, tickets: Any) -> Dict[str, Any]:
        tickets = validate_ticket_count(tickets)
        now = utcnow()

        async with BaseRepository.immediate_transaction() as conn:
            row = await RaffleRepository.get(raffle_id, conn)
            if row is None:
                raise NotFoundError("Raffle not found")
            raffle = Raffle.from_row(row)
            check_raffle_accepts(raffle, tickets, now)

            if raffle.ticket_capacity is not None:
                _, entered = await EntryRepository.count_for_raffle(raffle_id, conn)
                if entered + tickets > raffle.ticket_capacity:
                    raise CapacityExceededError(
                        f"Only {max(raffle.ticket_capacity - entered, 0)} tickets left in this raffle",
                        remaining=max(raffle.ticket_capacity - entered, 0),
                    )

            available = await LedgerRepository.balance(user_id, conn=conn)
            if available < tickets:
                raise InsufficientBalanceError(required=tickets, available=available)

            timestamp = to_db(now)
            ledger_id = await LedgerRepository.append(
                user_id, -tickets, LedgerKind.RAFFLE_ENTRY.value,
                f"Entered raffle: {raffle.title} ({tickets} tickets)",
                timestamp, raffle_id=raffle_id, conn=conn,
            )
            entry_id = await EntryRepository.create(user_id, raffle_id, tickets, ledger_id, timestamp, conn)
            await RaffleRepository.add_to_totals(raffle_id, tickets, conn)
            entry = RaffleEntry.from_row(await EntryRepository.get(entry_id, conn))

        TICKETS_ENTERED.inc(tickets)
        logger.info("User %s entered raffle %s with %d tickets", user_id, raffle_id, tickets)
        return {
            "entry": entry.to_public(),
            "new_balance": available - tickets,
        }

    @staticmethod
    async def list_entries(user_id: int, active_only: bool = False, won_only: bool = False) -> List[Dict[str, Any]]:
        rows = await EntryRepository.list_for_user(
            user_id,
            raffle_status=RaffleStatus.ACTIVE.value if active_only else None,
            won_only=won_only,
        )
        return [
            {
                "id": row["id"],
                "ticket_count": row["ticket_count"],
                "entered_at": db_to_iso(row["entered_at"]),
                "raffle": {
                    "id": row["raffle_id"],
                    "title": row["title"],
                    "image_url": row["image_url"],
                    "value": row["value"],
                    "draw_date": db_to_iso(row["draw_date"]),
                    "status": row["status"],
                    "winner_user_id": row["winner_user_id"],
                },
            }
            for row in rows
        ]

    @staticmethod
    async def tickets_in_raffle(user_id: Optional[int], raffle_id: int) -> Optional[int]:
        if user_id is None:
            return None
        return await EntryRepository.user_tickets(user_id, raffle_id)
