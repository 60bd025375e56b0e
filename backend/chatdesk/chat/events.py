"""Controller states and the events published to subscribers."""

from enum import Enum

from pydantic import BaseModel


class ControllerState(str, Enum):
    """States of the chat session controller."""

    IDLE = "idle"
    LOADING_CONVERSATIONS = "loading_conversations"
    LOADING_MESSAGES = "loading_messages"
    SENDING = "sending"
    ERROR_SURFACED = "error_surfaced"


class ControllerEvent(BaseModel):
    """A state change published to controller subscribers."""

    state: ControllerState
    conversation_id: int | None = None
    error: Exception | None = None

    model_config = {"arbitrary_types_allowed": True}


