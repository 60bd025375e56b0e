"""Tests for the command-line client."""

import pytest

from chatdesk import cli


@pytest.fixture
def remote(channel, monkeypatch):
    """Route the CLI's HTTP channel to the in-memory channel."""
    monkeypatch.setattr(cli, "HttpChannel", lambda url: channel)
    return channel


def feed_input(monkeypatch, *lines: str) -> None:
    """Answer input() prompts with lines, then EOF."""
    remaining = list(lines)

    def fake_input(prompt: str = "") -> str:
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)


async def run_cli(*argv: str) -> int:
    return await cli.run(cli.build_parser().parse_args(list(argv)))


class TestChatCommand:
    """Tests for the interactive chat command."""

    async def test_recovered_session_exits_zero(self, remote, monkeypatch):
        """Test that a failed send followed by a successful one exits 0."""
        conversation_id = remote.seed("Chat")
        remote.fail("send_chat_message")
        feed_input(monkeypatch, "first", "second", "/quit")

        assert await run_cli("chat", str(conversation_id)) == 0
        assert [m.content for m in remote.messages[conversation_id]] == [
            "second", "echo: second",
        ]
        assert remote.closed

    async def test_last_send_failed_exits_one(self, remote, monkeypatch):
        conversation_id = remote.seed("Chat")
        remote.fail("send_chat_message")
        feed_input(monkeypatch, "first")

        assert await run_cli("chat", str(conversation_id)) == 1

    async def test_quit_without_sending_exits_zero(self, remote, monkeypatch):
        conversation_id = remote.seed("Chat")
        feed_input(monkeypatch)

        assert await run_cli("chat", str(conversation_id)) == 0


class TestOneShotCommands:
    """Tests for single-request commands."""

    async def test_failed_send_exits_one(self, remote, capsys):
        conversation_id = remote.seed("Chat")
        remote.fail("send_chat_message")

        assert await run_cli("send", str(conversation_id), "hello") == 1
        assert "send_chat_message failed" in capsys.readouterr().err

    async def test_send_prints_reply(self, remote, capsys):
        conversation_id = remote.seed("Chat")

        assert await run_cli("send", str(conversation_id), "hello") == 0
        assert "echo: hello" in capsys.readouterr().out
