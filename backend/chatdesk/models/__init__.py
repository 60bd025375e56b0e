"""Pydantic models for chatdesk."""

from chatdesk.models.activity import ActivityLog, ActivityLogCreate, Actor
from chatdesk.models.chat import (
    Conversation,
    CreateConversationRequest,
    CreateConversationResponse,
    Message,
    SendMessageRequest,
    Sender,
)

__all__ = [
    "ActivityLog",
    "ActivityLogCreate",
    "Actor",
    "Conversation",
    "CreateConversationRequest",
    "CreateConversationResponse",
    "Message",
    "SendMessageRequest",
    "Sender",
]
