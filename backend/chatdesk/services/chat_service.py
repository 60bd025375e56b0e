"""Backend side of the chat commands.

Both the HTTP API and the in-process channel call these functions, so the
persistence and reply rules live in one place.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from chatdesk.models import (
    ActivityLog,
    ActivityLogCreate,
    Conversation,
    Message,
    Sender,
)
from chatdesk.db import chat_store, settings_store
from chatdesk.llm.gemini_client import get_gemini_client

logger = logging.getLogger(__name__)


class ChatServiceError(Exception):
    """Base exception for chat service errors."""

    pass


class ConversationNotFoundError(ChatServiceError):
    """The conversation does not exist."""

    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class InvalidRequestError(ChatServiceError):
    """The request is missing required input."""

    pass


class ReplyGenerationError(ChatServiceError):
    """The reply could not be generated."""

    pass


class ReplyGenerator(Protocol):
    async def generate_reply(self, history: list[Message]) -> str: ...


# Builds a reply generator for a credential
ReplyGeneratorFactory = Callable[[str], ReplyGenerator]


async def list_conversations() -> list[Conversation]:
    return await chat_store.list_conversations()


async def create_conversation(title: str) -> int:
    """Create a conversation and return its ID."""
    title = title.strip()
    if not title:
        raise InvalidRequestError("Conversation title must not be empty")
    conversation_id = await chat_store.create_conversation(title)
    logger.info(f"Created conversation {conversation_id}")
    return conversation_id


async def delete_conversation(conversation_id: int) -> None:
    if not await chat_store.delete_conversation(conversation_id):
        raise ConversationNotFoundError(conversation_id)
    logger.info(f"Deleted conversation {conversation_id}")


async def get_messages(conversation_id: int) -> list[Message]:
    if await chat_store.get_conversation(conversation_id) is None:
        raise ConversationNotFoundError(conversation_id)
    return await chat_store.list_messages(conversation_id)


async def send_chat_message(
    conversation_id: int,
    user_message: str,
    api_key: str,
    reply_generator_factory: ReplyGeneratorFactory | None = None,
) -> Message:
    """Generate a reply to a user message and store both.

    The reply is generated from the stored history plus the new message.
    Nothing is stored unless generation succeeds, then the user message and
    the reply are written in one transaction.

    Args:
        conversation_id: Conversation to post to
        user_message: Text of the user message
        api_key: Credential for the reply generator
        reply_generator_factory: Builds the generator for the credential
            (Gemini by default)

    Returns:
        The stored reply

    Raises:
        InvalidRequestError: If the message or key is empty
        ConversationNotFoundError: If the conversation does not exist
        ReplyGenerationError: If the reply could not be generated
    """
    if not user_message.strip():
        raise InvalidRequestError("Message must not be empty")
    if not api_key:
        raise InvalidRequestError("API key is required to send messages")

    if await chat_store.get_conversation(conversation_id) is None:
        raise ConversationNotFoundError(conversation_id)

    history = await chat_store.list_messages(conversation_id)
    history.append(
        Message(
            id=0,
            conversation_id=conversation_id,
            sender=Sender.USER,
            content=user_message,
            created_at=datetime.now(timezone.utc),
        )
    )

    factory = reply_generator_factory or get_gemini_client
    try:
        reply = await factory(api_key).generate_reply(history)
    except Exception as e:
        logger.error(f"Reply generation failed for conversation {conversation_id}: {e}")
        raise ReplyGenerationError(f"API Error: {e}") from e

    message = await chat_store.add_exchange(conversation_id, user_message, reply)
    logger.info(
        f"Stored exchange in conversation {conversation_id} (reply {message.id})"
    )
    return message


async def get_settings() -> dict[str, str]:
    return await settings_store.get_settings()


async def update_settings(settings: dict[str, str]) -> None:
    await settings_store.update_settings(settings)


async def log_activity(entry: ActivityLogCreate) -> int:
    return await settings_store.log_activity(entry)


async def get_activity_logs(limit: int = 50, offset: int = 0) -> list[ActivityLog]:
    return await settings_store.list_activity(limit=limit, offset=offset)
