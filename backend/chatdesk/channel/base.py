"""Remote command channel interface.

The chat session controller talks to the persistence-owning backend only
through this interface. A channel is a reliable, ordered call/response
transport: each call either resolves with a result or raises
``TransportError``. Implementations:

- ``HttpChannel``: talks to the FastAPI command API over httpx
- ``LocalChannel``: calls the backend services in-process
"""

from abc import ABC, abstractmethod

from chatdesk.models import ActivityLog, Conversation, Message


class RemoteChannel(ABC):
    """Abstract base class for remote command channels."""

    # =========================================================================
    # Commands used by the chat session controller
    # =========================================================================

    @abstractmethod
    async def get_conversations(self) -> list[Conversation]:
        """List all conversations, in the order the backend chooses."""
        ...

    @abstractmethod
    async def get_messages(self, conversation_id: int) -> list[Message]:
        """List the messages of a conversation, oldest first."""
        ...

    @abstractmethod
    async def create_conversation(self, title: str) -> int:
        """Create a conversation and return its id."""
        ...

    @abstractmethod
    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation and its messages."""
        ...

    @abstractmethod
    async def send_chat_message(
        self,
        conversation_id: int,
        user_message: str,
        credential: str,
    ) -> Message:
        """Persist a user message, generate a reply and persist it.

        Returns:
            The generated reply. The confirmed form of the user message is
            obtained by reloading the conversation's messages.
        """
        ...

    @abstractmethod
    async def get_settings(self) -> dict[str, str]:
        """Return the settings map."""
        ...

    @abstractmethod
    async def log_activity(
        self,
        actor_id: int | None,
        actor_name: str,
        action: str,
        entity_type: str,
        entity_id: int | None,
        description: str,
    ) -> None:
        """Record an entry in the activity log."""
        ...

    # =========================================================================
    # Administrative commands
    # =========================================================================

    @abstractmethod
    async def update_settings(self, settings: dict[str, str]) -> None:
        """Insert or replace settings."""
        ...

    @abstractmethod
    async def get_activity_logs(
        self, limit: int = 50, offset: int = 0
    ) -> list[ActivityLog]:
        """List activity log entries, newest first."""
        ...

    async def close(self) -> None:
        """Release transport resources. Override if needed."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
