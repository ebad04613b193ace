"""Database access layer helpers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from database.base_repository import BaseRepository, Row

Connection = Optional[aiosqlite.Connection]


class UserRepository(BaseRepository):
    """Repository for user identity records."""

    @staticmethod
    async def create(
        email: str,
        username: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        date_of_birth: Optional[str],
        role: str,
        created_at: str,
        conn: Connection = None,
    ) -> int:
        user_id, _ = await BaseRepository.execute(
            """
            INSERT INTO users (email, username, password_hash, first_name, last_name,
                               date_of_birth, role, subscription_tier, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, 'free', ?)
            """,
            (email, username, password_hash, first_name, last_name, date_of_birth, role, created_at),
            conn,
        )
        return user_id

    @staticmethod
    async def get_by_id(user_id: int, conn: Connection = None) -> Optional[Row]:
        return await BaseRepository.fetch_one("SELECT * FROM users WHERE id=?", (user_id,), conn)

    @staticmethod
    async def get_by_email(email: str, conn: Connection = None) -> Optional[Row]:
        return await BaseRepository.fetch_one("SELECT * FROM users WHERE email=?", (email,), conn)

    @staticmethod
    async def get_by_stripe_customer(customer_id: str, conn: Connection = None) -> Optional[Row]:
        return await BaseRepository.fetch_one(
            "SELECT * FROM users WHERE stripe_customer_id=?", (customer_id,), conn
        )

    @staticmethod
    async def get_identity(user_id: int) -> Optional[Row]:
        """User row plus the ledger-derived balance in one round trip."""
        return await BaseRepository.fetch_one(
            """
            SELECT u.*,
                   (SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE user_id = u.id)
                       AS ticket_balance
            FROM users u WHERE u.id=?
            """,
            (user_id,),
        )

    @staticmethod
    async def email_or_username_taken(email: str, username: str, conn: Connection = None) -> Optional[str]:
        """Return which of ``email``/``username`` already exists, if any."""
        row = await BaseRepository.fetch_one(
            """
            SELECT
                EXISTS(SELECT 1 FROM users WHERE email=?) AS email_taken,
                EXISTS(SELECT 1 FROM users WHERE username=? COLLATE NOCASE) AS username_taken
            """,
            (email, username),
            conn,
        )
        if row["email_taken"]:
            return "email"
        if row["username_taken"]:
            return "username"
        return None

    @staticmethod
    async def record_login(user_id: int, logged_in_at: str, role: str) -> None:
        await BaseRepository.execute(
            "UPDATE users SET last_login=?, role=? WHERE id=?",
            (logged_in_at, role, user_id),
        )

    @staticmethod
    async def set_role(user_id: int, role: str) -> None:
        await BaseRepository.execute("UPDATE users SET role=? WHERE id=?", (role, user_id))

    @staticmethod
    async def update_names(user_id: int, first_name: str, last_name: str) -> None:
        await BaseRepository.execute(
            "UPDATE users SET first_name=?, last_name=? WHERE id=?",
            (first_name, last_name, user_id),
        )

    @staticmethod
    async def set_subscription_tier(user_id: int, tier: str, conn: Connection = None) -> int:
        _, rowcount = await BaseRepository.execute(
            "UPDATE users SET subscription_tier=? WHERE id=?", (tier, user_id), conn
        )
        return rowcount

    @staticmethod
    async def set_stripe_customer(user_id: int, customer_id: str) -> None:
        await BaseRepository.execute(
            "UPDATE users SET stripe_customer_id=? WHERE id=?", (customer_id, user_id)
        )

    @staticmethod
    async def list_with_balances(limit: int, offset: int) -> List[Row]:
        return await BaseRepository.fetch_all(
            """
            SELECT u.id, u.email, u.username, u.first_name, u.last_name, u.role,
                   u.subscription_tier, u.created_at, u.last_login,
                   COALESCE(SUM(l.amount), 0) AS ticket_balance
            FROM users u
            LEFT JOIN ledger_entries l ON l.user_id = u.id
            GROUP BY u.id
            ORDER BY u.created_at DESC, u.id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )


class LedgerRepository(BaseRepository):
    """Append-only ticket ledger. There is no update or delete helper."""

    @staticmethod
    async def append(
        user_id: int,
        amount: int,
        kind: str,
        description: str,
        created_at: str,
        external_ref: Optional[str] = None,
        raffle_id: Optional[int] = None,
        conn: Connection = None,
    ) -> int:
        entry_id, _ = await BaseRepository.execute(
            """
            INSERT INTO ledger_entries (user_id, amount, kind, description, external_ref, raffle_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, amount, kind, description, external_ref, raffle_id, created_at),
            conn,
        )
        return entry_id

    @staticmethod
    async def append_once(
        user_id: int,
        amount: int,
        kind: str,
        description: str,
        created_at: str,
        external_ref: str,
        conn: Connection = None,
    ) -> Optional[int]:
        """Append unless ``external_ref`` was already recorded; returns None on replay."""
        entry_id, rowcount = await BaseRepository.execute(
            """
            INSERT INTO ledger_entries (user_id, amount, kind, description, external_ref, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(external_ref) DO NOTHING
            """,
            (user_id, amount, kind, description, external_ref, created_at),
            conn,
        )
        return entry_id if rowcount else None

    @staticmethod
    async def balance(user_id: int, conn: Connection = None) -> int:
        return int(await BaseRepository.fetch_value(
            "SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE user_id=?", (user_id,), conn
        ))

    @staticmethod
    async def history(user_id: int, limit: int, offset: int) -> Tuple[List[Row], int]:
        rows = await BaseRepository.fetch_all(
            """
            SELECT * FROM ledger_entries WHERE user_id=?
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        )
        total = await BaseRepository.fetch_value(
            "SELECT COUNT(*) FROM ledger_entries WHERE user_id=?", (user_id,)
        )
        return rows, int(total)

    @staticmethod
    async def sum_by_kind(user_id: int, kind: str) -> int:
        return int(await BaseRepository.fetch_value(
            "SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE user_id=? AND kind=?",
            (user_id, kind),
        ))


RAFFLE_COLUMNS = (
    "title", "description", "category", "year", "grade", "value", "image_url",
    "status", "draw_date", "min_tickets", "max_tickets", "ticket_capacity", "featured",
)


class RaffleRepository(BaseRepository):
    """Repository for raffle records."""

    @staticmethod
    async def create(fields: Dict[str, Any], created_at: str, conn: Connection = None) -> int:
        columns = [name for name in RAFFLE_COLUMNS if name in fields]
        placeholders = ", ".join(["?"] * (len(columns) + 1))
        raffle_id, _ = await BaseRepository.execute(
            f"INSERT INTO raffles ({', '.join(columns)}, created_at) VALUES ({placeholders})",
            tuple(fields[name] for name in columns) + (created_at,),
            conn,
        )
        return raffle_id

    @staticmethod
    async def get(raffle_id: int, conn: Connection = None) -> Optional[Row]:
        return await BaseRepository.fetch_one("SELECT * FROM raffles WHERE id=?", (raffle_id,), conn)

    @staticmethod
    async def get_with_counts(raffle_id: int) -> Optional[Row]:
        return await BaseRepository.fetch_one(
            """
            SELECT r.*,
                   (SELECT COUNT(*) FROM raffle_entries e WHERE e.raffle_id = r.id) AS entry_count,
                   (SELECT COALESCE(SUM(ticket_count), 0) FROM raffle_entries e
                     WHERE e.raffle_id = r.id) AS ticket_count
            FROM raffles r WHERE r.id=?
            """,
            (raffle_id,),
        )

    @staticmethod
    async def list_filtered(
        status: Optional[str] = None,
        category: Optional[str] = None,
        featured: Optional[bool] = None,
        draw_after: Optional[str] = None,
        limit: int = 100,
    ) -> List[Row]:
        query = "SELECT * FROM raffles"
        conditions: List[str] = []
        params: List[Any] = []
        if status:
            conditions.append("status=?")
            params.append(status)
        if category:
            conditions.append("category=?")
            params.append(category)
        if featured is not None:
            conditions.append("featured=?")
            params.append(1 if featured else 0)
        if draw_after:
            conditions.append("draw_date > ?")
            params.append(draw_after)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY featured DESC, draw_date ASC, id ASC LIMIT ?"
        params.append(limit)
        return await BaseRepository.fetch_all(query, params)

    @staticmethod
    async def update(raffle_id: int, fields: Dict[str, Any], updated_at: str, conn: Connection = None) -> int:
        columns = [name for name in RAFFLE_COLUMNS if name in fields]
        assignments = ", ".join(f"{name}=?" for name in columns + ["updated_at"])
        _, rowcount = await BaseRepository.execute(
            f"UPDATE raffles SET {assignments} WHERE id=?",
            tuple(fields[name] for name in columns) + (updated_at, raffle_id),
            conn,
        )
        return rowcount

    @staticmethod
    async def delete(raffle_id: int, conn: Connection = None) -> int:
        _, rowcount = await BaseRepository.execute("DELETE FROM raffles WHERE id=?", (raffle_id,), conn)
        return rowcount

    @staticmethod
    async def add_to_totals(raffle_id: int, tickets: int, conn: Connection = None) -> None:
        await BaseRepository.execute(
            """
            UPDATE raffles
            SET total_entries = total_entries + 1, total_tickets = total_tickets + ?
            WHERE id=?
            """,
            (tickets, raffle_id),
            conn,
        )

    @staticmethod
    async def mark_completed(raffle_id: int, winner_user_id: int, selected_at: str, conn: Connection = None) -> int:
        """Finalize a draw; the status guard makes a second finalize a no-op."""
        _, rowcount = await BaseRepository.execute(
            """
            UPDATE raffles
            SET winner_user_id=?, winner_selected_at=?, status='completed', updated_at=?
            WHERE id=? AND status != 'completed'
            """,
            (winner_user_id, selected_at, selected_at, raffle_id),
            conn,
        )
        return rowcount


class EntryRepository(BaseRepository):
    """Repository for raffle entries."""

    @staticmethod
    async def create(
        user_id: int,
        raffle_id: int,
        ticket_count: int,
        ledger_entry_id: int,
        entered_at: str,
        conn: Connection = None,
    ) -> int:
        entry_id, _ = await BaseRepository.execute(
            """
            INSERT INTO raffle_entries (user_id, raffle_id, ticket_count, ledger_entry_id, entered_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, raffle_id, ticket_count, ledger_entry_id, entered_at),
            conn,
        )
        return entry_id

    @staticmethod
    async def get(entry_id: int, conn: Connection = None) -> Optional[Row]:
        return await BaseRepository.fetch_one("SELECT * FROM raffle_entries WHERE id=?", (entry_id,), conn)

    @staticmethod
    async def tickets_by_user(raffle_id: int, conn: Connection = None) -> List[Tuple[int, int]]:
        """Per-user ticket totals in first-entry order."""
        rows = await BaseRepository.fetch_all(
            """
            SELECT user_id, SUM(ticket_count) AS tickets
            FROM raffle_entries WHERE raffle_id=?
            GROUP BY user_id
            ORDER BY MIN(id)
            """,
            (raffle_id,),
            conn,
        )
        return [(row["user_id"], int(row["tickets"])) for row in rows]

    @staticmethod
    async def count_for_raffle(raffle_id: int, conn: Connection = None) -> Tuple[int, int]:
        row = await BaseRepository.fetch_one(
            """
            SELECT COUNT(*) AS entries, COALESCE(SUM(ticket_count), 0) AS tickets
            FROM raffle_entries WHERE raffle_id=?
            """,
            (raffle_id,),
            conn,
        )
        return int(row["entries"]), int(row["tickets"])

    @staticmethod
    async def user_tickets(user_id: int, raffle_id: int) -> int:
        return int(await BaseRepository.fetch_value(
            "SELECT COALESCE(SUM(ticket_count), 0) FROM raffle_entries WHERE user_id=? AND raffle_id=?",
            (user_id, raffle_id),
        ))

    @staticmethod
    async def list_for_user(
        user_id: int,
        raffle_status: Optional[str] = None,
        won_only: bool = False,
    ) -> List[Row]:
        query = """
            SELECT e.id, e.raffle_id, e.ticket_count, e.entered_at,
                   r.title, r.image_url, r.value, r.draw_date, r.status, r.winner_user_id
            FROM raffle_entries e
            JOIN raffles r ON r.id = e.raffle_id
            WHERE e.user_id=?
        """
        params: List[Any] = [user_id]
        if raffle_status:
            query += " AND r.status=?"
            params.append(raffle_status)
        if won_only:
            query += " AND r.winner_user_id = e.user_id"
        query += " ORDER BY e.entered_at DESC, e.id DESC"
        return await BaseRepository.fetch_all(query, params)

    @staticmethod
    async def summary_for_user(user_id: int) -> Row:
        return await BaseRepository.fetch_one(
            """
            SELECT COUNT(*) AS total_entries,
                   COALESCE(SUM(e.ticket_count), 0) AS tickets_spent,
                   COUNT(DISTINCT CASE WHEN r.status = 'active' THEN e.raffle_id END) AS active_raffles,
                   (SELECT COUNT(*) FROM raffles WHERE winner_user_id = ?) AS wins
            FROM raffle_entries e
            JOIN raffles r ON r.id = e.raffle_id
            WHERE e.user_id=?
            """,
            (user_id, user_id),
        )


class AdViewRepository(BaseRepository):
    """Repository for ad-watch events."""

    @staticmethod
    async def record(
        user_id: int,
        viewed_at: str,
        ad_id: Optional[str] = None,
        provider: str = "internal",
        tickets_awarded: int = 1,
        conn: Connection = None,
    ) -> int:
        view_id, _ = await BaseRepository.execute(
            """
            INSERT INTO ad_views (user_id, ad_id, provider, tickets_awarded, viewed_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, ad_id, provider, tickets_awarded, viewed_at),
            conn,
        )
        return view_id

    @staticmethod
    async def count_since(user_id: int, since: str, conn: Connection = None) -> int:
        return int(await BaseRepository.fetch_value(
            "SELECT COUNT(*) FROM ad_views WHERE user_id=? AND viewed_at >= ?",
            (user_id, since),
            conn,
        ))

    @staticmethod
    async def count_total(user_id: int) -> int:
        return int(await BaseRepository.fetch_value(
            "SELECT COUNT(*) FROM ad_views WHERE user_id=?", (user_id,)
        ))


class SubscriptionRepository(BaseRepository):
    """Local mirror of payment-processor subscriptions."""

    @staticmethod
    async def get_by_external_id(subscription_id: str, conn: Connection = None) -> Optional[Row]:
        return await BaseRepository.fetch_one(
            "SELECT * FROM subscriptions WHERE stripe_subscription_id=?", (subscription_id,), conn
        )

    @staticmethod
    async def upsert(
        user_id: int,
        subscription_id: str,
        status: str,
        period_start: Optional[str],
        period_end: Optional[str],
        cancel_at_period_end: bool,
        updated_at: str,
        conn: Connection = None,
    ) -> None:
        await BaseRepository.execute(
            """
            INSERT INTO subscriptions (user_id, stripe_subscription_id, status, current_period_start,
                                       current_period_end, cancel_at_period_end, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(stripe_subscription_id) DO UPDATE SET
                status=excluded.status,
                current_period_start=excluded.current_period_start,
                current_period_end=excluded.current_period_end,
                cancel_at_period_end=excluded.cancel_at_period_end,
                updated_at=excluded.updated_at
            """,
            (user_id, subscription_id, status, period_start, period_end,
             1 if cancel_at_period_end else 0, updated_at),
            conn,
        )


class WebhookEventRepository(BaseRepository):
    """Record of payment-processor events already applied."""

    @staticmethod
    async def mark_processed(event_id: str, event_type: str, processed_at: str, conn: Connection = None) -> bool:
        """Return False when the event id was seen before."""
        _, rowcount = await BaseRepository.execute(
            """
            INSERT INTO processed_webhook_events (event_id, event_type, processed_at)
            VALUES (?, ?, ?)
            ON CONFLICT(event_id) DO NOTHING
            """,
            (event_id, event_type, processed_at),
            conn,
        )
        return rowcount == 1


class StatsRepository(BaseRepository):
    """Aggregate queries for the admin dashboard."""

    @staticmethod
    async def platform_stats() -> Row:
        return await BaseRepository.fetch_one(
            """
            SELECT
                (SELECT COUNT(*) FROM users) AS total_users,
                (SELECT COUNT(*) FROM users WHERE subscription_tier='premium') AS premium_users,
                (SELECT COUNT(*) FROM raffles WHERE status='active') AS active_raffles,
                (SELECT COUNT(*) FROM raffles WHERE status='completed') AS completed_raffles,
                (SELECT COUNT(*) FROM raffle_entries) AS total_entries,
                (SELECT COALESCE(SUM(ticket_count), 0) FROM raffle_entries) AS tickets_entered,
                (SELECT COALESCE(SUM(amount), 0) FROM ledger_entries WHERE kind='purchase') AS tickets_purchased,
                (SELECT COALESCE(SUM(amount), 0) FROM ledger_entries) AS tickets_outstanding
            """
        )
