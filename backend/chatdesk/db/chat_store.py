"""Database operations for conversations and messages."""

from datetime import datetime

import aiosqlite

from chatdesk.models import Conversation, Message, Sender
from chatdesk.db.database import get_db, utc_now


def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
    """Convert a database row to a Conversation model."""
    return Conversation(
        id=row["id"],
        title=row["title"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_message(row: aiosqlite.Row) -> Message:
    """Convert a database row to a Message model."""
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        sender=Sender(row["sender"]),
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


async def list_conversations() -> list[Conversation]:
    """List conversations, most recently active first."""
    db = await get_db()
    cursor = await db.execute(
        """
        SELECT id, title, created_at FROM conversations
        ORDER BY updated_at DESC, id DESC
        """
    )
    rows = await cursor.fetchall()
    return [_row_to_conversation(row) for row in rows]


async def get_conversation(conversation_id: int) -> Conversation | None:
    """Get a conversation by ID."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT id, title, created_at FROM conversations WHERE id = ?",
        (conversation_id,),
    )
    row = await cursor.fetchone()
    return _row_to_conversation(row) if row else None


async def create_conversation(title: str) -> int:
    """Create a conversation and return its ID."""
    db = await get_db()
    now = utc_now()
    cursor = await db.execute(
        "INSERT INTO conversations (title, created_at, updated_at) VALUES (?, ?, ?)",
        (title, now, now),
    )
    await db.commit()
    return cursor.lastrowid


async def delete_conversation(conversation_id: int) -> bool:
    """Delete a conversation and its messages.

    Returns:
        True if the conversation existed.
    """
    db = await get_db()
    cursor = await db.execute(
        "DELETE FROM conversations WHERE id = ?", (conversation_id,)
    )
    await db.commit()
    return cursor.rowcount > 0


async def list_messages(conversation_id: int) -> list[Message]:
    """List a conversation's messages, oldest first."""
    db = await get_db()
    cursor = await db.execute(
        """
        SELECT id, conversation_id, sender, content, created_at FROM messages
        WHERE conversation_id = ?
        ORDER BY created_at ASC, id ASC
        """,
        (conversation_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_message(row) for row in rows]


async def get_message(message_id: int) -> Message | None:
    """Get a message by ID."""
    db = await get_db()
    cursor = await db.execute(
        """
        SELECT id, conversation_id, sender, content, created_at FROM messages
        WHERE id = ?
        """,
        (message_id,),
    )
    row = await cursor.fetchone()
    return _row_to_message(row) if row else None


async def add_exchange(
    conversation_id: int,
    user_message: str,
    reply: str,
) -> Message:
    """Store a user message and its reply together.

    Both rows are written in one transaction and the conversation is marked
    as updated.

    Returns:
        The stored reply.
    """
    db = await get_db()
    try:
        await db.execute(
            """
            INSERT INTO messages (conversation_id, sender, content, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (conversation_id, Sender.USER.value, user_message, utc_now()),
        )
        now = utc_now()
        cursor = await db.execute(
            """
            INSERT INTO messages (conversation_id, sender, content, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (conversation_id, Sender.AI.value, reply, now),
        )
        reply_id = cursor.lastrowid
        await db.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (now, conversation_id),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    message = await get_message(reply_id)
    if message is None:
        raise RuntimeError(f"Stored reply {reply_id} could not be read back")
    return message
