"""In-process channel that calls the backend services directly."""

from collections.abc import Awaitable
from typing import TypeVar

from chatdesk.channel.base import RemoteChannel
from chatdesk.chat.errors import TransportError
from chatdesk.models import ActivityLog, ActivityLogCreate, Conversation, Message
from chatdesk.services import chat_service
from chatdesk.services.chat_service import ReplyGeneratorFactory

T = TypeVar("T")


class LocalChannel(RemoteChannel):
    """Channel backed by the local database, for single-process use.

    The database must be initialized with ``init_database`` first. Every
    service failure is reported as ``TransportError``, the same as a remote
    channel would.
    """

    def __init__(self, reply_generator_factory: ReplyGeneratorFactory | None = None):
        self._reply_generator_factory = reply_generator_factory

    async def _call(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except Exception as e:
            raise TransportError(str(e), operation=operation) from e

    async def get_conversations(self) -> list[Conversation]:
        return await self._call("get_conversations", chat_service.list_conversations())

    async def get_messages(self, conversation_id: int) -> list[Message]:
        return await self._call(
            "get_messages", chat_service.get_messages(conversation_id)
        )

    async def create_conversation(self, title: str) -> int:
        return await self._call(
            "create_conversation", chat_service.create_conversation(title)
        )

    async def delete_conversation(self, conversation_id: int) -> None:
        await self._call(
            "delete_conversation", chat_service.delete_conversation(conversation_id)
        )

    async def send_chat_message(
        self,
        conversation_id: int,
        user_message: str,
        credential: str,
    ) -> Message:
        return await self._call(
            "send_chat_message",
            chat_service.send_chat_message(
                conversation_id,
                user_message,
                credential,
                reply_generator_factory=self._reply_generator_factory,
            ),
        )

    async def get_settings(self) -> dict[str, str]:
        return await self._call("get_settings", chat_service.get_settings())

    async def log_activity(
        self,
        actor_id: int | None,
        actor_name: str,
        action: str,
        entity_type: str,
        entity_id: int | None,
        description: str,
    ) -> None:
        entry = ActivityLogCreate(
            user_id=actor_id,
            username=actor_name,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
        )
        await self._call("log_activity", chat_service.log_activity(entry))

    async def update_settings(self, settings: dict[str, str]) -> None:
        await self._call("update_settings", chat_service.update_settings(settings))

    async def get_activity_logs(
        self, limit: int = 50, offset: int = 0
    ) -> list[ActivityLog]:
        return await self._call(
            "get_activity_logs",
            chat_service.get_activity_logs(limit=limit, offset=offset),
        )
