"""Command API endpoints for conversations, messages, settings and activity."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from chatdesk.models import (
    ActivityLog,
    ActivityLogCreate,
    Conversation,
    CreateConversationRequest,
    CreateConversationResponse,
    Message,
    SendMessageRequest,
)
from chatdesk.services import chat_service
from chatdesk.services.chat_service import (
    ConversationNotFoundError,
    InvalidRequestError,
    ReplyGenerationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/conversations")
async def list_conversations() -> list[Conversation]:
    """List conversations, most recently active first."""
    return await chat_service.list_conversations()


@router.post("/conversations", status_code=201)
async def create_conversation(
    request: CreateConversationRequest,
) -> CreateConversationResponse:
    """Create a new conversation."""
    try:
        conversation_id = await chat_service.create_conversation(request.title)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CreateConversationResponse(id=conversation_id)


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: int) -> dict[str, str | int]:
    """Delete a conversation and its messages."""
    try:
        await chat_service.delete_conversation(conversation_id)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted", "id": conversation_id}


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(conversation_id: int) -> list[Message]:
    """List a conversation's messages, oldest first."""
    try:
        return await chat_service.get_messages(conversation_id)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/conversations/{conversation_id}/messages")
async def send_message(
    conversation_id: int,
    body: SendMessageRequest,
    request: Request,
) -> Message:
    """Send a user message and return the generated reply.

    The user message and the reply are stored together once the reply has
    been generated; on failure nothing is stored.
    """
    factory = getattr(request.app.state, "reply_generator_factory", None)
    try:
        return await chat_service.send_chat_message(
            conversation_id,
            body.user_message,
            body.api_key,
            reply_generator_factory=factory,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ReplyGenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/settings")
async def get_settings() -> dict[str, str]:
    """Return all settings."""
    return await chat_service.get_settings()


@router.put("/settings")
async def update_settings(settings: dict[str, str]) -> dict[str, str]:
    """Insert or replace settings."""
    await chat_service.update_settings(settings)
    logger.info(f"Updated settings: {sorted(settings)}")
    return {"status": "updated"}


@router.post("/activity", status_code=201)
async def log_activity(entry: ActivityLogCreate) -> dict[str, str]:
    """Record an activity log entry."""
    await chat_service.log_activity(entry)
    return {"status": "logged"}


@router.get("/activity")
async def list_activity(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[ActivityLog]:
    """List activity log entries, newest first."""
    return await chat_service.get_activity_logs(limit=limit, offset=offset)
