"""Weighted raffle draw service."""

from __future__ import annotations

import random
from typing import Any, Dict, Optional, Sequence, Tuple

from prometheus_client import Counter

from core import RaffleStatus, get_logger
from core.exceptions import (
    AlreadyDrawnError,
    NoEntriesError,
    NotFoundError,
    RaffleNotActiveError,
)
from database.base_repository import BaseRepository
from database.models import Raffle, User
from database.repositories import EntryRepository, RaffleRepository, UserRepository
from utils.timeutils import to_db, utcnow

logger = get_logger(__name__)

DRAWS_COMPLETED = Counter("raffle_draws_completed_total", "Raffles finalized by a draw")

_system_random = random.SystemRandom()


def pick_winner(weights: Sequence[Tuple[int, int]], rng: random.Random) -> int:
    """Pick one user id with probability proportional to their ticket count.

    ``weights`` is a sequence of ``(user_id, tickets)``. One integer is drawn
    uniformly from ``[0, total)`` and located in the cumulative ranges, which
    is the same as drawing one slot from a pool holding one slot per ticket.
    """
    total = sum(tickets for _, tickets in weights)
    if total <= 0:
        raise NoEntriesError()
    k = rng.randrange(total)
    upper = 0
    for user_id, tickets in weights:
        upper += tickets
        if k < upper:
            return user_id
    raise AssertionError("cumulative ticket ranges do not cover the draw")


class WeightedLottery:
    """Draws raffle winners weighted by tickets entered.

    The default source is ``random.SystemRandom``; pass a seeded
    ``random.Random`` for reproducible draws.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or _system_random

    async def draw(self, raffle_id: int, rng: Optional[random.Random] = None) -> Dict[str, Any]:
        """Select the winner of a raffle and mark it completed.

        Args:
            raffle_id: Raffle to finalize
            rng: Optional random source overriding the instance default

        Returns:
            Dict with ``raffle``, ``winner``, ``total_tickets`` and ``winner_tickets``

        Raises:
            NotFoundError: If the raffle does not exist
            AlreadyDrawnError: If the raffle already has a winner
            RaffleNotActiveError: If the raffle was cancelled
            NoEntriesError: If nobody entered
        """
        rng = rng or self.rng
        async with BaseRepository.immediate_transaction() as conn:
            row = await RaffleRepository.get(raffle_id, conn)
            if row is None:
                raise NotFoundError("Raffle not found")
            raffle = Raffle.from_row(row)
            if raffle.status == RaffleStatus.COMPLETED.value:
                raise AlreadyDrawnError()
            if raffle.status == RaffleStatus.CANCELLED.value:
                raise RaffleNotActiveError("Cancelled raffles cannot be drawn")

            weights = await EntryRepository.tickets_by_user(raffle_id, conn)
            if not weights:
                raise NoEntriesError()

            winner_id = pick_winner(weights, rng)
            selected_at = to_db(utcnow())
            if not await RaffleRepository.mark_completed(raffle_id, winner_id, selected_at, conn):
                raise AlreadyDrawnError()

            winner = User.from_row(await UserRepository.get_by_id(winner_id, conn))
            raffle = Raffle.from_row(await RaffleRepository.get(raffle_id, conn))

        total = sum(tickets for _, tickets in weights)
        winner_tickets = dict(weights)[winner_id]
        DRAWS_COMPLETED.inc()
        logger.info(
            "Raffle %s drawn: winner user %s with %d of %d tickets",
            raffle_id, winner_id, winner_tickets, total,
        )
        return {
            "raffle": raffle.to_public(),
            "winner": {
                "id": winner.id,
                "email": winner.email,
                "display_name": winner.display_name,
            },
            "total_tickets": total,
            "winner_tickets": winner_tickets,
        }
