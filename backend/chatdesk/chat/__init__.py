"""Chat session controller.

This package keeps the client-side view of conversations consistent with
the backend:
- CredentialCache: memoizes the credential needed to send messages
- ConversationRegistry: conversation list and current selection
- MessageTimeline: messages of the selected conversation
- ChatSessionController: orchestrates loads, sends, creates and deletes
"""

from chatdesk.chat.controller import (
    ChatSessionController,
    get_chat_controller,
    init_chat_controller,
    shutdown_chat_controller,
)
from chatdesk.chat.credentials import DEFAULT_CREDENTIAL_KEY, CredentialCache
from chatdesk.chat.errors import (
    ChatError,
    MissingCredentialError,
    SendInProgressError,
    StaleResultDiscarded,
    TransportError,
)
from chatdesk.chat.events import ControllerEvent, ControllerState
from chatdesk.chat.registry import ConversationRegistry
from chatdesk.chat.timeline import MessageTimeline

__all__ = [
    "ChatError",
    "ChatSessionController",
    "ControllerEvent",
    "ControllerState",
    "ConversationRegistry",
    "CredentialCache",
    "DEFAULT_CREDENTIAL_KEY",
    "MessageTimeline",
    "MissingCredentialError",
    "SendInProgressError",
    "StaleResultDiscarded",
    "TransportError",
    "get_chat_controller",
    "init_chat_controller",
    "shutdown_chat_controller",
]
