"""Message history of the selected conversation."""

import logging

from chatdesk.channel.base import RemoteChannel
from chatdesk.chat.errors import StaleResultDiscarded
from chatdesk.models import Message
from chatdesk.chat.registry import ConversationRegistry

logger = logging.getLogger(__name__)


class MessageTimeline:
    """Ordered messages of the registry's selected conversation.

    Holds confirmed messages in the order the remote side returns them,
    followed by at most one optimistic message per in-flight send.

    A load result is applied only if its conversation is still selected
    when it completes and no newer load or optimistic append has happened
    since. Anything else raises ``StaleResultDiscarded`` and leaves the
    timeline as is.
    """

    def __init__(self, channel: RemoteChannel, registry: ConversationRegistry):
        self._channel = channel
        self._registry = registry
        self._messages: list[Message] = []
        self._generation = 0
        self._in_flight = 0

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the timeline."""
        return list(self._messages)

    @property
    def pending(self) -> list[Message]:
        """Optimistic messages not yet confirmed or rolled back."""
        return [m for m in self._messages if m.optimistic]

    @property
    def loading(self) -> bool:
        """Whether a load is in flight."""
        return self._in_flight > 0

    def __len__(self) -> int:
        return len(self._messages)

    async def load(self, conversation_id: int) -> list[Message]:
        """Fetch and replace the timeline for a conversation.

        Returns:
            The applied messages.

        Raises:
            StaleResultDiscarded: If the selection moved or a newer load was
                issued while this one was in flight.
            TransportError: If the fetch failed. The timeline is untouched.
        """
        self._generation += 1
        generation = self._generation
        self._in_flight += 1
        try:
            messages = await self._channel.get_messages(conversation_id)
        finally:
            self._in_flight -= 1

        if (
            generation != self._generation
            or self._registry.selected_id != conversation_id
        ):
            raise StaleResultDiscarded(conversation_id)

        self._messages = list(messages)
        logger.debug(
            f"Loaded {len(self._messages)} message(s) for conversation {conversation_id}"
        )
        return self.messages

    async def reconcile(self, conversation_id: int) -> list[Message]:
        """Replace optimistic entries with the authoritative message list."""
        return await self.load(conversation_id)

    def append_optimistic(self, message: Message) -> None:
        """Append a locally created message at the tail."""
        if not message.optimistic:
            raise ValueError(f"Message {message.id} is not optimistic")
        if message.conversation_id != self._registry.selected_id:
            raise ValueError(
                f"Message for conversation {message.conversation_id} does not "
                f"belong to the selected conversation {self._registry.selected_id}"
            )
        # A load issued before this append would drop it
        self._generation += 1
        self._messages.append(message)

    def rollback(self, local_id: int) -> bool:
        """Remove the optimistic message with the given local id.

        Returns:
            True if a message was removed.
        """
        for index, message in enumerate(self._messages):
            if message.optimistic and message.id == local_id:
                del self._messages[index]
                logger.debug(f"Rolled back optimistic message {local_id}")
                return True
        return False

    def clear(self) -> None:
        """Empty the timeline and invalidate in-flight loads."""
        self._messages = []
        self._generation += 1
