"""Tests for the conversation registry and the message timeline."""

import asyncio

import pytest

from chatdesk.chat.errors import StaleResultDiscarded, TransportError
from chatdesk.chat.registry import ConversationRegistry
from chatdesk.chat.timeline import MessageTimeline
from chatdesk.models import Message, Sender


@pytest.fixture
def registry(channel) -> ConversationRegistry:
    return ConversationRegistry(channel)


@pytest.fixture
def timeline(channel, registry) -> MessageTimeline:
    return MessageTimeline(channel, registry)


class TestConversationRegistry:
    """Tests for ConversationRegistry."""

    async def test_refresh_replaces_list_in_remote_order(self, channel, registry):
        """The list is whatever the channel returns, unchanged."""
        first = channel.seed("First")
        second = channel.seed("Second")

        conversations = await registry.refresh()

        assert [c.id for c in conversations] == [second, first]
        assert registry.get(first).title == "First"
        assert registry.get(999) is None

    async def test_refresh_failure_keeps_previous_list(self, channel, registry):
        """A failed refresh leaves the old list intact."""
        channel.seed("Kept")
        await registry.refresh()
        channel.seed("Not seen")
        channel.fail("get_conversations")

        with pytest.raises(TransportError):
            await registry.refresh()

        assert [c.title for c in registry.conversations] == ["Kept"]
        assert not registry.loading

    async def test_loading_flag(self, channel, registry):
        """loading is set while a refresh is in flight."""
        gate = channel.hold("get_conversations")
        task = asyncio.create_task(registry.refresh())
        await asyncio.sleep(0)

        assert registry.loading
        gate.set()
        await task
        assert not registry.loading

    async def test_select_does_not_load(self, channel, registry):
        """Selecting only changes the selection."""
        registry.select(3)

        assert registry.selected_id == 3
        assert channel.calls == []

    async def test_create_and_remove_delegate(self, channel, registry):
        """create and remove go to the channel."""
        conversation_id = await registry.create("New")
        assert conversation_id in channel.conversations

        await registry.remove(conversation_id)
        assert conversation_id not in channel.conversations

    async def test_conversations_is_a_snapshot(self, channel, registry):
        """Mutating the returned list does not touch the registry."""
        channel.seed("Only")
        await registry.refresh()

        registry.conversations.clear()

        assert len(registry.conversations) == 1


class TestMessageTimeline:
    """Tests for MessageTimeline."""

    async def test_load_applies_for_selected_conversation(self, channel, registry, timeline):
        conversation_id = channel.seed("Chat", (Sender.USER, "hi"), (Sender.AI, "hello"))
        registry.select(conversation_id)

        messages = await timeline.load(conversation_id)

        assert [m.content for m in messages] == ["hi", "hello"]
        assert len(timeline) == 2
        assert not timeline.loading

    async def test_load_for_unselected_conversation_is_discarded(
        self, channel, registry, timeline
    ):
        """A load whose conversation is not selected at completion is not applied."""
        conversation_id = channel.seed("Chat", (Sender.USER, "hi"))
        registry.select(None)

        with pytest.raises(StaleResultDiscarded):
            await timeline.load(conversation_id)

        assert timeline.messages == []

    async def test_slow_load_does_not_overwrite_newer_selection(
        self, channel, registry, timeline
    ):
        """Pending load(A), select(B), load(B) completes, then load(A) resolves."""
        a = channel.seed("A", (Sender.USER, "from A"))
        b = channel.seed("B", (Sender.USER, "from B"))
        gate = channel.hold("get_messages", a)

        registry.select(a)
        load_a = asyncio.create_task(timeline.load(a))
        await asyncio.sleep(0)

        registry.select(b)
        timeline.clear()
        await timeline.load(b)

        gate.set()
        with pytest.raises(StaleResultDiscarded):
            await load_a

        assert [m.content for m in timeline.messages] == ["from B"]

    async def test_older_load_of_same_conversation_is_discarded(
        self, channel, registry, timeline
    ):
        """Only the most recently issued load is applied."""
        a = channel.seed("A", (Sender.USER, "first"))
        registry.select(a)
        gate = channel.hold("get_messages", a)

        slow = asyncio.create_task(timeline.load(a))
        await asyncio.sleep(0)
        channel.messages[a].clear()
        await timeline.load(a)

        gate.set()
        with pytest.raises(StaleResultDiscarded):
            await slow
        assert timeline.messages == []

    async def test_load_failure_leaves_timeline(self, channel, registry, timeline):
        a = channel.seed("A", (Sender.USER, "kept"))
        registry.select(a)
        await timeline.load(a)
        channel.fail("get_messages")

        with pytest.raises(TransportError):
            await timeline.load(a)

        assert [m.content for m in timeline.messages] == ["kept"]
        assert not timeline.loading

    async def test_append_and_rollback_optimistic(self, channel, registry, timeline):
        a = channel.seed("A", (Sender.USER, "confirmed"))
        registry.select(a)
        await timeline.load(a)

        pending = Message.pending_user_message(-1, a, "draft")
        timeline.append_optimistic(pending)

        assert timeline.messages[-1] == pending
        assert timeline.pending == [pending]

        assert timeline.rollback(-1) is True
        assert [m.content for m in timeline.messages] == ["confirmed"]
        assert timeline.rollback(-1) is False

    async def test_append_discards_load_already_in_flight(
        self, channel, registry, timeline
    ):
        """A load issued before an optimistic append does not overwrite it."""
        a = channel.seed("A", (Sender.USER, "confirmed"))
        registry.select(a)
        await timeline.load(a)
        gate = channel.hold("get_messages", a)

        slow = asyncio.create_task(timeline.load(a))
        await asyncio.sleep(0)
        pending = Message.pending_user_message(-1, a, "draft")
        timeline.append_optimistic(pending)

        gate.set()
        with pytest.raises(StaleResultDiscarded):
            await slow

        assert [m.content for m in timeline.messages] == ["confirmed", "draft"]
        assert timeline.pending == [pending]

    async def test_rollback_never_removes_confirmed_messages(
        self, channel, registry, timeline
    ):
        a = channel.seed("A", (Sender.USER, "confirmed"))
        registry.select(a)
        confirmed = (await timeline.load(a))[0]

        assert timeline.rollback(confirmed.id) is False
        assert len(timeline) == 1

    async def test_append_rejects_confirmed_and_foreign_messages(
        self, channel, registry, timeline
    ):
        a = channel.seed("A", (Sender.USER, "confirmed"))
        registry.select(a)
        confirmed = (await timeline.load(a))[0]

        with pytest.raises(ValueError):
            timeline.append_optimistic(confirmed)
        with pytest.raises(ValueError):
            timeline.append_optimistic(Message.pending_user_message(-1, a + 1, "x"))

    async def test_reconcile_supersedes_optimistic_entry(self, channel, registry, timeline):
        a = channel.seed("A")
        registry.select(a)
        timeline.append_optimistic(Message.pending_user_message(-1, a, "hello"))
        await channel.send_chat_message(a, "hello", "key")

        messages = await timeline.reconcile(a)

        assert [(m.sender, m.content) for m in messages] == [
            (Sender.USER, "hello"),
            (Sender.AI, "echo: hello"),
        ]
        assert timeline.pending == []
        assert all(m.id > 0 for m in messages)

    def test_pending_message_requires_negative_id(self):
        with pytest.raises(ValueError):
            Message.pending_user_message(5, 1, "x")
