"""Pydantic models for conversations and messages."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Sender(str, Enum):
    """Who wrote a message."""

    USER = "user"
    AI = "ai"


class Conversation(BaseModel):
    """A conversation as returned by the remote side."""

    id: int
    title: str
    created_at: datetime


class Message(BaseModel):
    """A single message in a conversation.

    Confirmed messages carry the positive id assigned by the remote side.
    Optimistic messages are created locally while a send is in flight; they
    use negative ids so they can never collide with a confirmed one.
    """

    id: int
    conversation_id: int
    sender: Sender
    content: str
    created_at: datetime
    optimistic: bool = False

    @classmethod
    def pending_user_message(
        cls, local_id: int, conversation_id: int, content: str
    ) -> "Message":
        """Build the optimistic user message shown before the remote confirms it."""
        if local_id >= 0:
            raise ValueError(f"Local message ids must be negative, got {local_id}")
        return cls(
            id=local_id,
            conversation_id=conversation_id,
            sender=Sender.USER,
            content=content,
            created_at=datetime.now(timezone.utc),
            optimistic=True,
        )


class CreateConversationRequest(BaseModel):
    """Request to create a conversation."""

    title: str = Field(..., min_length=1, description="Conversation title")


class CreateConversationResponse(BaseModel):
    """Response after creating a conversation."""

    id: int


class SendMessageRequest(BaseModel):
    """Request to send a user message and generate a reply."""

    user_message: str = Field(..., description="Text of the user message")
    api_key: str = Field(..., description="Credential for the reply generator")
