"""Pytest configuration and fixtures."""

import asyncio
import itertools
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from chatdesk.channel.base import RemoteChannel
from chatdesk.chat.controller import ChatSessionController
from chatdesk.chat.errors import TransportError
from chatdesk.db.database import close_database, init_database
from chatdesk.main import app
from chatdesk.models import (
    Actor,
    ActivityLog,
    Conversation,
    Message,
    Sender,
)


@pytest.fixture(autouse=True)
async def setup_test_db():
    """Set up a test database for each test."""
    # Create a temporary database file
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    # Initialize the database
    await init_database(db_path)

    yield

    # Clean up
    await close_database()
    os.unlink(db_path)


class EchoReplyGenerator:
    """Reply generator that echoes the last user message."""

    def __init__(self, api_key: str, fail: bool = False):
        self.api_key = api_key
        self.fail = fail
        self.histories: list[list[Message]] = []

    async def generate_reply(self, history: list[Message]) -> str:
        self.histories.append(history)
        if self.fail:
            raise RuntimeError("503 Service Unavailable")
        return f"echo: {history[-1].content}"


class ReplyGenerators:
    """Factory handing out echo generators and remembering them."""

    def __init__(self) -> None:
        self.created: list[EchoReplyGenerator] = []
        self.fail = False

    def __call__(self, api_key: str) -> EchoReplyGenerator:
        generator = EchoReplyGenerator(api_key, fail=self.fail)
        self.created.append(generator)
        return generator


@pytest.fixture
def reply_generators() -> ReplyGenerators:
    """Reply generator factory that never calls a real model."""
    return ReplyGenerators()


@pytest.fixture
async def client(reply_generators: ReplyGenerators) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    app.state.reply_generator_factory = reply_generators
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.state.reply_generator_factory = None


class FakeChannel(RemoteChannel):
    """In-memory channel with controllable latency and failures.

    - ``hold(operation, key)`` makes the next matching call wait until the
      returned event is set
    - ``fail(operation)`` makes the next call of an operation raise
    - ``calls`` records every call in order
    """

    def __init__(self, settings: dict[str, str] | None = None):
        self.settings = dict(settings if settings is not None else {"google_ai_key": "test-key"})
        self.conversations: dict[int, Conversation] = {}
        self.messages: dict[int, list[Message]] = {}
        self.activity: list[dict] = []
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, Exception] = {}
        self.gates: dict[tuple[str, int | None], asyncio.Event] = {}
        self.closed = False
        self._conversation_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    # Test controls

    def hold(self, operation: str, key: int | None = None) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[(operation, key)] = gate
        return gate

    def fail(self, operation: str, error: Exception | None = None) -> None:
        self.failures[operation] = error or TransportError(
            f"{operation} failed", operation=operation
        )

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def seed(self, title: str, *contents: tuple[Sender, str]) -> int:
        conversation_id = next(self._conversation_ids)
        self.conversations[conversation_id] = Conversation(
            id=conversation_id, title=title, created_at=self._tick()
        )
        self.messages[conversation_id] = []
        for sender, content in contents:
            self._store(conversation_id, sender, content)
        return conversation_id

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _store(self, conversation_id: int, sender: Sender, content: str) -> Message:
        message = Message(
            id=next(self._message_ids),
            conversation_id=conversation_id,
            sender=sender,
            content=content,
            created_at=self._tick(),
        )
        self.messages[conversation_id].append(message)
        return message

    async def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        key = args[0] if args else None
        gate = self.gates.pop((operation, key), None) or self.gates.pop(
            (operation, None), None
        )
        if gate is not None:
            await gate.wait()
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    # RemoteChannel

    async def get_conversations(self) -> list[Conversation]:
        await self._enter("get_conversations")
        return sorted(self.conversations.values(), key=lambda c: c.id, reverse=True)

    async def get_messages(self, conversation_id: int) -> list[Message]:
        await self._enter("get_messages", conversation_id)
        if conversation_id not in self.conversations:
            raise TransportError(f"Conversation {conversation_id} not found", status_code=404)
        return list(self.messages[conversation_id])

    async def create_conversation(self, title: str) -> int:
        await self._enter("create_conversation", title)
        return self.seed(title)

    async def delete_conversation(self, conversation_id: int) -> None:
        await self._enter("delete_conversation", conversation_id)
        self.conversations.pop(conversation_id, None)
        self.messages.pop(conversation_id, None)

    async def send_chat_message(
        self, conversation_id: int, user_message: str, credential: str
    ) -> Message:
        await self._enter("send_chat_message", conversation_id, user_message, credential)
        self._store(conversation_id, Sender.USER, user_message)
        return self._store(conversation_id, Sender.AI, f"echo: {user_message}")

    async def get_settings(self) -> dict[str, str]:
        await self._enter("get_settings")
        return dict(self.settings)

    async def log_activity(
        self,
        actor_id: int | None,
        actor_name: str,
        action: str,
        entity_type: str,
        entity_id: int | None,
        description: str,
    ) -> None:
        await self._enter("log_activity", actor_id, actor_name, action)
        self.activity.append({
            "user_id": actor_id,
            "username": actor_name,
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "description": description,
        })

    async def update_settings(self, settings: dict[str, str]) -> None:
        await self._enter("update_settings")
        self.settings.update(settings)

    async def get_activity_logs(self, limit: int = 50, offset: int = 0) -> list[ActivityLog]:
        await self._enter("get_activity_logs")
        return []

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def channel() -> FakeChannel:
    """In-memory remote channel."""
    return FakeChannel()


@pytest.fixture
def controller(channel: FakeChannel) -> ChatSessionController:
    """Controller over the in-memory channel."""
    return ChatSessionController(channel, actor=Actor(id=7, name="alice"))
