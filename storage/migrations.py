"""Ad-hoc database migrations for the offline database."""

from __future__ import annotations

from sqlalchemy import text


def ensure_pending_actions_table(conn) -> None:
    conn.execute(
        text(
            """
            CREATE TABLE IF NOT EXISTS pending_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                kind TEXT NOT NULL,
                target TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at INTEGER NOT NULL
            )
            """
        )
    )
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_pending_actions_created_at
            ON pending_actions (created_at)
            """
        )
    )


def ensure_cache_table(conn) -> None:
    conn.execute(
        text(
            """
            CREATE TABLE IF NOT EXISTS offline_cache (
                key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                expires_at INTEGER NOT NULL
            )
            """
        )
    )
    conn.execute(
        text("CREATE INDEX IF NOT EXISTS ix_offline_cache_timestamp ON offline_cache (timestamp)")
    )


def run_all(engine) -> None:
    with engine.begin() as conn:
        # mirrors the SQLModel metadata for databases opened without create_all
        ensure_pending_actions_table(conn)
        ensure_cache_table(conn)


__all__ = ["run_all"]
