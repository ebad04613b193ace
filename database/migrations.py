"""Database schema migrations."""

from __future__ import annotations

from .connection import OptimizedSQLitePool


SCHEMA_SQL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        username TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        date_of_birth TEXT,
        role TEXT NOT NULL DEFAULT 'user',
        subscription_tier TEXT NOT NULL DEFAULT 'free',
        stripe_customer_id TEXT,
        created_at TEXT NOT NULL,
        last_login TEXT
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username_nocase ON users(username COLLATE NOCASE);",
    "CREATE INDEX IF NOT EXISTS idx_users_created ON users(created_at);",
    """
    CREATE TABLE IF NOT EXISTS raffles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        category TEXT NOT NULL,
        year INTEGER,
        grade TEXT,
        value REAL NOT NULL,
        image_url TEXT,
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('coming_soon', 'active', 'completed', 'cancelled')),
        draw_date TEXT NOT NULL,
        min_tickets INTEGER NOT NULL DEFAULT 1,
        max_tickets INTEGER,
        ticket_capacity INTEGER,
        featured INTEGER NOT NULL DEFAULT 0,
        total_entries INTEGER NOT NULL DEFAULT 0,
        total_tickets INTEGER NOT NULL DEFAULT 0,
        winner_user_id INTEGER,
        winner_selected_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        FOREIGN KEY(winner_user_id) REFERENCES users(id),
        CHECK ((status = 'completed') = (winner_user_id IS NOT NULL AND winner_selected_at IS NOT NULL))
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_raffles_listing ON raffles(status, featured DESC, draw_date);",
    "CREATE INDEX IF NOT EXISTS idx_raffles_category ON raffles(category);",
    """
    CREATE TABLE IF NOT EXISTS ledger_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        amount INTEGER NOT NULL CHECK (amount != 0),
        kind TEXT NOT NULL
            CHECK (kind IN ('purchase', 'ad_reward', 'raffle_entry', 'subscription', 'admin_adjustment')),
        description TEXT NOT NULL DEFAULT '',
        external_ref TEXT UNIQUE,
        raffle_id INTEGER,
        created_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id),
        FOREIGN KEY(raffle_id) REFERENCES raffles(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_ledger_user ON ledger_entries(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_ledger_kind ON ledger_entries(user_id, kind);",
    # Ledger rows are append-only
    """
    CREATE TRIGGER IF NOT EXISTS trg_ledger_no_update
    BEFORE UPDATE ON ledger_entries
    BEGIN
        SELECT RAISE(ABORT, 'ledger entries are immutable');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_ledger_no_delete
    BEFORE DELETE ON ledger_entries
    BEGIN
        SELECT RAISE(ABORT, 'ledger entries are immutable');
    END;
    """,
    """
    CREATE TABLE IF NOT EXISTS raffle_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        raffle_id INTEGER NOT NULL,
        ticket_count INTEGER NOT NULL CHECK (ticket_count > 0),
        ledger_entry_id INTEGER NOT NULL UNIQUE,
        entered_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id),
        FOREIGN KEY(raffle_id) REFERENCES raffles(id),
        FOREIGN KEY(ledger_entry_id) REFERENCES ledger_entries(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_entries_raffle ON raffle_entries(raffle_id);",
    "CREATE INDEX IF NOT EXISTS idx_entries_user ON raffle_entries(user_id, entered_at);",
    """
    CREATE TABLE IF NOT EXISTS ad_views (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        ad_id TEXT,
        provider TEXT NOT NULL DEFAULT 'internal',
        tickets_awarded INTEGER NOT NULL DEFAULT 1,
        viewed_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_ad_views_user ON ad_views(user_id, viewed_at);",
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        stripe_subscription_id TEXT UNIQUE NOT NULL,
        status TEXT NOT NULL,
        current_period_start TEXT,
        current_period_end TEXT,
        cancel_at_period_end INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id);",
    """
    CREATE TABLE IF NOT EXISTS processed_webhook_events (
        event_id TEXT PRIMARY KEY,
        event_type TEXT NOT NULL,
        processed_at TEXT NOT NULL
    );
    """,
)


async def run_migrations(pool: OptimizedSQLitePool) -> None:
    async with pool.connection() as conn:
        await conn.execute("BEGIN")
        try:
            for statement in SCHEMA_SQL:
                await conn.execute(statement)
        except Exception:
            await conn.rollback()
            raise
        else:
            await conn.commit()
