"""Database operations for settings and the activity log."""

from datetime import datetime

import aiosqlite

from chatdesk.models import ActivityLog, ActivityLogCreate
from chatdesk.db.database import get_db, utc_now


async def get_settings() -> dict[str, str]:
    """Return all settings as a key/value map."""
    db = await get_db()
    cursor = await db.execute("SELECT key, value FROM settings")
    rows = await cursor.fetchall()
    return {row["key"]: row["value"] or "" for row in rows}


async def update_settings(settings: dict[str, str]) -> None:
    """Insert or replace settings in one transaction."""
    db = await get_db()
    try:
        await db.executemany(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            list(settings.items()),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise


def _row_to_activity(row: aiosqlite.Row) -> ActivityLog:
    """Convert a database row to an ActivityLog model."""
    return ActivityLog(
        id=row["id"],
        user_id=row["user_id"],
        username=row["username"],
        action=row["action"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        description=row["description"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


async def log_activity(entry: ActivityLogCreate) -> int:
    """Record an activity log entry and return its ID."""
    db = await get_db()
    cursor = await db.execute(
        """
        INSERT INTO activity_logs
            (user_id, username, action, entity_type, entity_id, description, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            entry.user_id,
            entry.username,
            entry.action,
            entry.entity_type,
            entry.entity_id,
            entry.description,
            utc_now(),
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def list_activity(limit: int = 50, offset: int = 0) -> list[ActivityLog]:
    """List activity log entries, newest first."""
    db = await get_db()
    cursor = await db.execute(
        """
        SELECT * FROM activity_logs
        ORDER BY created_at DESC, id DESC
        LIMIT ? OFFSET ?
        """,
        (limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_activity(row) for row in rows]
