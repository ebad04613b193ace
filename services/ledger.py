"""Ticket ledger service.

The balance of a user is always the sum of their ledger entries; nothing in
the system stores a balance that could drift from the log.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from core import LedgerKind, PaginationDefaults, get_logger
from core.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from database.base_repository import BaseRepository
from database.models import LedgerEntry
from database.repositories import LedgerRepository, UserRepository
from utils.timeutils import to_db, utcnow

logger = get_logger(__name__)


class LedgerService:
    """Reads and writes on the append-only ticket ledger."""

    @staticmethod
    async def balance(user_id: int) -> int:
        return await LedgerRepository.balance(user_id)

    @staticmethod
    async def history(user_id: int, page: int = 1, per_page: int = PaginationDefaults.PER_PAGE) -> Dict[str, Any]:
        """Paginated ledger history, newest first."""
        page = max(1, page)
        per_page = max(1, min(per_page, PaginationDefaults.MAX_PER_PAGE))
        rows, total = await LedgerRepository.history(user_id, per_page, (page - 1) * per_page)
        return {
            "transactions": [LedgerEntry.from_row(row).to_public() for row in rows],
            "page": page,
            "per_page": per_page,
            "total": total,
            "pages": (total + per_page - 1) // per_page,
        }

    @staticmethod
    async def credit(
        user_id: int,
        amount: int,
        kind: LedgerKind,
        description: str,
        external_ref: Optional[str] = None,
    ) -> int:
        """Append a positive entry and return the new balance."""
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")
        async with BaseRepository.immediate_transaction() as conn:
            await LedgerRepository.append(
                user_id, amount, kind.value, description, to_db(utcnow()),
                external_ref=external_ref, conn=conn,
            )
            balance = await LedgerRepository.balance(user_id, conn=conn)
        logger.info("Credited %d tickets (%s) to user %s", amount, kind.value, user_id)
        return balance

    @staticmethod
    async def admin_adjust(user_id: int, amount: Any, reason: str, admin_email: str) -> Dict[str, Any]:
        """Signed manual correction; the balance may not go negative."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise ValidationError("Adjustment amount must be a non-zero integer")
        reason = reason.strip() if isinstance(reason, str) else ""
        if not reason:
            raise ValidationError("A reason is required for adjustments")

        async with BaseRepository.immediate_transaction() as conn:
            if await UserRepository.get_by_id(user_id, conn) is None:
                raise NotFoundError("User not found")
            available = await LedgerRepository.balance(user_id, conn=conn)
            if available + amount < 0:
                raise InsufficientBalanceError(required=-amount, available=available)
            entry_id = await LedgerRepository.append(
                user_id, amount, LedgerKind.ADMIN_ADJUSTMENT.value,
                f"Admin adjustment by {admin_email}: {reason}", to_db(utcnow()), conn=conn,
            )
            balance = available + amount

        logger.info("Admin %s adjusted user %s by %+d", admin_email, user_id, amount)
        return {"ledger_entry_id": entry_id, "new_balance": balance}
