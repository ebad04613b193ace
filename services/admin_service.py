"""Admin dashboard queries."""

from __future__ import annotations

from typing import Any, Dict

from core import PaginationDefaults
from database.repositories import StatsRepository, UserRepository
from utils.timeutils import db_to_iso


class AdminService:

    @staticmethod
    async def list_users(page: int = 1, per_page: int = PaginationDefaults.PER_PAGE) -> Dict[str, Any]:
        page = max(1, page)
        per_page = max(1, min(per_page, PaginationDefaults.MAX_PER_PAGE))
        rows = await UserRepository.list_with_balances(per_page, (page - 1) * per_page)
        users = [
            {
                "id": row["id"],
                "email": row["email"],
                "username": row["username"],
                "first_name": row["first_name"],
                "last_name": row["last_name"],
                "is_admin": row["role"] == "admin",
                "subscription_tier": row["subscription_tier"],
                "ticket_balance": int(row["ticket_balance"]),
                "created_at": db_to_iso(row["created_at"]),
                "last_login": db_to_iso(row["last_login"]),
            }
            for row in rows
        ]
        return {"users": users, "page": page, "per_page": per_page}

    @staticmethod
    async def platform_stats() -> Dict[str, Any]:
        row = await StatsRepository.platform_stats()
        return {name: int(value or 0) for name, value in row.items()}
