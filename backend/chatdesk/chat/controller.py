"""ChatSessionController orchestrates conversations, messages and sends."""

import asyncio
import itertools
import logging
from collections.abc import Callable

from chatdesk.channel.base import RemoteChannel
from chatdesk.chat.credentials import CredentialCache
from chatdesk.chat.errors import (
    ChatError,
    MissingCredentialError,
    SendInProgressError,
    StaleResultDiscarded,
)
from chatdesk.chat.events import ControllerEvent, ControllerState
from chatdesk.chat.registry import ConversationRegistry
from chatdesk.chat.timeline import MessageTimeline
from chatdesk.models import Actor, Conversation, Message

logger = logging.getLogger(__name__)

Listener = Callable[[ControllerEvent], None]

# Process-wide controller instance
_controller: "ChatSessionController | None" = None


class ChatSessionController:
    """Single entry point for UI-driven chat operations.

    Responsibilities:
    - Load the conversation list and the selected conversation's messages
    - Create and delete conversations
    - Send messages with an optimistic timeline entry, reconciled against
      the authoritative message list on success and rolled back on failure
    - Allow at most one in-flight send per conversation (a second send is
      rejected with SendInProgressError)
    - Publish state changes and surfaced errors to subscribers
    - Record create/delete/send activity without blocking on it

    Read operations (load_conversations, load_messages, delete_conversation)
    log and swallow transport failures, leaving the previous state visible.
    Write operations (create_conversation, send_message) propagate them.
    """

    def __init__(
        self,
        channel: RemoteChannel,
        actor: Actor | None = None,
        credentials: CredentialCache | None = None,
    ):
        """Initialize the controller.

        Args:
            channel: Remote command channel to the backend.
            actor: User recorded in activity logs (defaults to "system").
            credentials: Credential cache (one is created if not given).
        """
        self._channel = channel
        self._actor = actor or Actor()
        self._credentials = credentials or CredentialCache(channel)
        self._registry = ConversationRegistry(channel)
        self._timeline = MessageTimeline(channel, self._registry)
        self._local_ids = itertools.count(-1, -1)
        self._sending: set[int] = set()
        self._state = ControllerState.IDLE
        self._last_error: Exception | None = None
        self._listeners: list[Listener] = []
        self._activity_tasks: set[asyncio.Task] = set()

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def channel(self) -> RemoteChannel:
        return self._channel

    @property
    def actor(self) -> Actor:
        return self._actor

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def conversations(self) -> list[Conversation]:
        return self._registry.conversations

    @property
    def selected_id(self) -> int | None:
        return self._registry.selected_id

    @property
    def messages(self) -> list[Message]:
        return self._timeline.messages

    @property
    def is_loading(self) -> bool:
        """Whether the selected conversation's messages are loading."""
        return self._timeline.loading

    @property
    def is_sending(self) -> bool:
        """Whether a send is in flight for the selected conversation."""
        return self._registry.selected_id in self._sending

    @property
    def last_error(self) -> Exception | None:
        """Most recent error published to subscribers."""
        return self._last_error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state changes.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Conversations
    # =========================================================================

    async def load_conversations(self) -> list[Conversation]:
        """Refresh the conversation list. Failures are logged and swallowed."""
        self._transition(ControllerState.LOADING_CONVERSATIONS)
        try:
            await self._registry.refresh()
        except ChatError as e:
            logger.warning(f"Failed to load conversations: {e}")
            self._surface(e)
        finally:
            self._settle()
        return self._registry.conversations

    async def create_conversation(self, title: str) -> int:
        """Create a conversation, refresh the list and open it.

        Returns:
            The new conversation's id.

        Raises:
            TransportError: If the conversation could not be created.
        """
        try:
            conversation_id = await self._registry.create(title)
        except Exception as e:
            logger.error(f"Failed to create conversation {title!r}: {e}")
            self._surface(e)
            self._settle()
            raise

        self._record_activity(
            "create",
            "conversation",
            conversation_id,
            f"Created conversation '{title}'",
        )
        await self.load_conversations()
        await self.load_messages(conversation_id)
        return conversation_id

    async def delete_conversation(self, conversation_id: int) -> None:
        """Delete a conversation. Failures are logged and swallowed.

        Deleting the selected conversation clears the selection and the
        timeline together.
        """
        try:
            await self._registry.remove(conversation_id)
        except ChatError as e:
            logger.warning(f"Failed to delete conversation {conversation_id}: {e}")
            self._surface(e, conversation_id)
            self._settle()
            return

        if self._registry.selected_id == conversation_id:
            self._registry.select(None)
            self._timeline.clear()

        self._record_activity(
            "delete",
            "conversation",
            conversation_id,
            f"Deleted conversation #{conversation_id}",
        )
        await self.load_conversations()

    # =========================================================================
    # Messages
    # =========================================================================

    async def load_messages(self, conversation_id: int) -> list[Message]:
        """Select a conversation and load its messages.

        Failures are logged and swallowed. A result that arrives after the
        selection moved on is discarded.

        Returns:
            The timeline after the load.
        """
        if self._registry.selected_id != conversation_id:
            self._registry.select(conversation_id)
            self._timeline.clear()

        if conversation_id in self._sending:
            # The in-flight send reconciles or rolls back this timeline
            logger.debug(
                f"Send in flight for conversation {conversation_id}, deferring load"
            )
            self._settle()
            return self._timeline.messages

        self._transition(ControllerState.LOADING_MESSAGES, conversation_id)
        try:
            await self._timeline.load(conversation_id)
        except StaleResultDiscarded as e:
            logger.debug(str(e))
        except ChatError as e:
            logger.warning(
                f"Failed to load messages for conversation {conversation_id}: {e}"
            )
            self._surface(e, conversation_id)
        finally:
            self._settle()
        return self._timeline.messages

    async def send_message(self, text: str) -> Message | None:
        """Send a message to the selected conversation.

        The message is shown immediately as an optimistic entry. On success
        the timeline is reloaded from the backend; on failure the entry is
        removed before the error is raised.

        Returns:
            The generated reply, or None if no conversation is selected.

        Raises:
            SendInProgressError: If a send is already in flight for the
                selected conversation.
            MissingCredentialError: If no credential is configured.
            TransportError: If the send failed.
        """
        conversation_id = self._registry.selected_id
        if conversation_id is None:
            logger.debug("No conversation selected, nothing to send")
            return None

        if conversation_id in self._sending:
            raise SendInProgressError(conversation_id)

        self._sending.add(conversation_id)
        self._transition(ControllerState.SENDING, conversation_id)
        try:
            return await self._send(conversation_id, text)
        finally:
            self._sending.discard(conversation_id)
            self._settle()

    async def _send(self, conversation_id: int, text: str) -> Message:
        local_id: int | None = None
        try:
            credential = await self._credentials.get_credential()

            if self._registry.selected_id == conversation_id:
                local_id = next(self._local_ids)
                self._timeline.append_optimistic(
                    Message.pending_user_message(local_id, conversation_id, text)
                )

            reply = await self._channel.send_chat_message(
                conversation_id, text, credential
            )
        except asyncio.CancelledError:
            if local_id is not None:
                self._timeline.rollback(local_id)
            raise
        except Exception as e:
            if local_id is not None:
                await self._discard_pending(conversation_id, local_id)
            if isinstance(e, MissingCredentialError):
                logger.info(f"Cannot send to conversation {conversation_id}: {e}")
            else:
                logger.error(
                    f"Failed to send message to conversation {conversation_id}: {e}"
                )
            self._surface(e, conversation_id)
            raise

        if self._registry.selected_id == conversation_id:
            await self._reconcile(conversation_id)
        else:
            logger.debug(
                f"Conversation {conversation_id} no longer selected, "
                "discarding send result"
            )

        self._record_activity(
            "send",
            "conversation",
            conversation_id,
            f"Sent message to conversation #{conversation_id}",
        )
        return reply

    async def _discard_pending(self, conversation_id: int, local_id: int) -> None:
        """Remove a failed send's optimistic entry."""
        if self._timeline.rollback(local_id):
            return
        if self._registry.selected_id == conversation_id:
            # Timeline was cleared by a reselect while the send was in flight
            await self._reconcile(conversation_id)

    async def _reconcile(self, conversation_id: int) -> None:
        try:
            await self._timeline.reconcile(conversation_id)
        except StaleResultDiscarded as e:
            logger.debug(str(e))
        except ChatError as e:
            logger.warning(
                f"Failed to reconcile messages for conversation {conversation_id}: {e}"
            )

    # =========================================================================
    # Activity log
    # =========================================================================

    def _record_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None,
        description: str,
    ) -> None:
        """Write an activity log entry in the background."""
        task = asyncio.create_task(
            self._write_activity(action, entity_type, entity_id, description)
        )
        self._activity_tasks.add(task)
        task.add_done_callback(self._activity_tasks.discard)

    async def _write_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None,
        description: str,
    ) -> None:
        try:
            await self._channel.log_activity(
                self._actor.id,
                self._actor.name,
                action,
                entity_type,
                entity_id,
                description,
            )
        except Exception as e:
            logger.warning(f"Failed to log activity '{action}': {e}")

    async def flush_activity(self) -> None:
        """Wait for pending activity log writes."""
        if self._activity_tasks:
            await asyncio.gather(*list(self._activity_tasks))

    # =========================================================================
    # State machine
    # =========================================================================

    def _transition(
        self, state: ControllerState, conversation_id: int | None = None
    ) -> None:
        if state == self._state:
            return
        logger.debug(f"Chat controller: {self._state.value} -> {state.value}")
        self._state = state
        self._publish(ControllerEvent(state=state, conversation_id=conversation_id))

    def _settle(self) -> None:
        """Move to the state implied by what is still in flight."""
        selected = self._registry.selected_id
        if selected is not None and selected in self._sending:
            self._transition(ControllerState.SENDING, selected)
        elif self._timeline.loading:
            self._transition(ControllerState.LOADING_MESSAGES, selected)
        elif self._registry.loading:
            self._transition(ControllerState.LOADING_CONVERSATIONS)
        else:
            self._transition(ControllerState.IDLE)

    def _surface(self, error: Exception, conversation_id: int | None = None) -> None:
        """Publish an error to subscribers."""
        self._last_error = error
        self._state = ControllerState.ERROR_SURFACED
        self._publish(
            ControllerEvent(
                state=ControllerState.ERROR_SURFACED,
                conversation_id=conversation_id,
                error=error,
            )
        )

    def _publish(self, event: ControllerEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Chat controller listener failed")


def init_chat_controller(
    channel: RemoteChannel,
    actor: Actor | None = None,
) -> ChatSessionController:
    """Create the process-wide chat controller.

    Raises:
        RuntimeError: If a controller is already initialized.
    """
    global _controller
    if _controller is not None:
        raise RuntimeError("Chat controller already initialized.")
    _controller = ChatSessionController(channel, actor=actor)
    return _controller


def get_chat_controller() -> ChatSessionController:
    """Get the process-wide chat controller."""
    if _controller is None:
        raise RuntimeError(
            "Chat controller not initialized. Call init_chat_controller first."
        )
    return _controller


async def shutdown_chat_controller() -> None:
    """Flush pending activity, close the channel and drop the controller."""
    global _controller
    if _controller:
        await _controller.flush_activity()
        await _controller.channel.close()
        _controller = None
