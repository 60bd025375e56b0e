"""Conversation list and current selection."""

import logging

from chatdesk.channel.base import RemoteChannel
from chatdesk.models import Conversation

logger = logging.getLogger(__name__)


class ConversationRegistry:
    """Holds the ordered conversation list and the selected conversation id.

    Only the chat session controller mutates a registry.
    """

    def __init__(self, channel: RemoteChannel):
        self._channel = channel
        self._conversations: list[Conversation] = []
        self._selected_id: int | None = None
        self._refreshing = 0

    @property
    def conversations(self) -> list[Conversation]:
        """Snapshot of the conversation list."""
        return list(self._conversations)

    @property
    def selected_id(self) -> int | None:
        """Id of the selected conversation, if any."""
        return self._selected_id

    @property
    def loading(self) -> bool:
        """Whether a list refresh is in flight."""
        return self._refreshing > 0

    def get(self, conversation_id: int) -> Conversation | None:
        """Look up a listed conversation by id."""
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    async def refresh(self) -> list[Conversation]:
        """Replace the list with the remote result.

        On failure the previous list is left intact and the error propagates.
        """
        self._refreshing += 1
        try:
            conversations = await self._channel.get_conversations()
        finally:
            self._refreshing -= 1

        self._conversations = list(conversations)
        logger.debug(f"Loaded {len(self._conversations)} conversation(s)")
        return self.conversations

    def select(self, conversation_id: int | None) -> None:
        """Set the current selection. Does not load messages."""
        self._selected_id = conversation_id

    async def create(self, title: str) -> int:
        """Create a conversation remotely and return its id."""
        conversation_id = await self._channel.create_conversation(title)
        logger.info(f"Created conversation {conversation_id} ({title!r})")
        return conversation_id

    async def remove(self, conversation_id: int) -> None:
        """Delete a conversation remotely."""
        await self._channel.delete_conversation(conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")
