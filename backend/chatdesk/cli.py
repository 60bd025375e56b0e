#!/usr/bin/env python3
"""Command-line client for chatdesk.

Talks to a running chatdesk API through the chat session controller.

Usage:
    python -m chatdesk.cli serve --port 8000
    python -m chatdesk.cli set-key "$GOOGLE_API_KEY"
    python -m chatdesk.cli new "Trip planning"
    python -m chatdesk.cli list
    python -m chatdesk.cli send 1 "Where should we go in May?"
    python -m chatdesk.cli chat 1
    python -m chatdesk.cli history 1
    python -m chatdesk.cli delete 1
    python -m chatdesk.cli activity --limit 20

The API root defaults to CHATDESK_API_URL or http://localhost:8000/api/v1.
"""

import argparse
import asyncio
import logging
import os
import sys

from chatdesk.channel.http import DEFAULT_API_URL, HttpChannel
from chatdesk.chat import (
    DEFAULT_CREDENTIAL_KEY,
    ChatError,
    ChatSessionController,
    ControllerEvent,
    ControllerState,
    init_chat_controller,
    shutdown_chat_controller,
)
from chatdesk.models import Actor, Message, Sender


# ANSI color codes
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{color}{text}{Colors.RESET}"


def print_message(message: Message) -> None:
    """Print one timeline entry."""
    timestamp = message.created_at.strftime("%Y-%m-%d %H:%M")
    if message.sender == Sender.USER:
        who = colorize("you", Colors.CYAN)
    else:
        who = colorize("ai", Colors.GREEN)
    pending = colorize(" (sending)", Colors.DIM) if message.optimistic else ""
    print(f"{colorize(timestamp, Colors.DIM)} {who}{pending}: {message.content}")


class ErrorReporter:
    """Prints errors surfaced by the controller and remembers that one occurred."""

    def __init__(self) -> None:
        self.failed = False

    def __call__(self, event: ControllerEvent) -> None:
        if event.state == ControllerState.ERROR_SURFACED and event.error is not None:
            self.failed = True
            print(colorize(f"Error: {event.error}", Colors.RED), file=sys.stderr)


async def cmd_list(controller: ChatSessionController, args: argparse.Namespace) -> None:
    conversations = await controller.load_conversations()
    if not conversations:
        print("No conversations yet. Create one with: chatdesk new TITLE")
        return
    for conversation in conversations:
        created = conversation.created_at.strftime("%Y-%m-%d %H:%M")
        print(f"{colorize(str(conversation.id).rjust(4), Colors.BOLD)}  "
              f"{conversation.title}  {colorize(created, Colors.DIM)}")


async def cmd_new(controller: ChatSessionController, args: argparse.Namespace) -> None:
    conversation_id = await controller.create_conversation(args.title)
    print(f"Created conversation {colorize(str(conversation_id), Colors.BOLD)}")


async def cmd_delete(controller: ChatSessionController, args: argparse.Namespace) -> None:
    await controller.delete_conversation(args.conversation_id)
    if not any(c.id == args.conversation_id for c in controller.conversations):
        print(f"Deleted conversation {args.conversation_id}")


async def cmd_history(controller: ChatSessionController, args: argparse.Namespace) -> None:
    messages = await controller.load_messages(args.conversation_id)
    if not messages:
        print(colorize("(no messages)", Colors.DIM))
    for message in messages:
        print_message(message)


async def cmd_send(controller: ChatSessionController, args: argparse.Namespace) -> None:
    await controller.load_messages(args.conversation_id)
    reply = await controller.send_message(args.text)
    if reply is not None:
        print_message(reply)


async def cmd_chat(controller: ChatSessionController, args: argparse.Namespace) -> int:
    """Interactive session. Exits non-zero only if the last send failed."""
    await cmd_history(controller, args)
    print(colorize("Type a message, or /quit to exit.", Colors.DIM))
    failed = False

    while True:
        try:
            text = await asyncio.to_thread(input, colorize("> ", Colors.CYAN))
        except EOFError:
            break
        text = text.strip()
        if not text:
            continue
        if text in ("/quit", "/exit"):
            break

        try:
            reply = await controller.send_message(text)
        except ChatError:
            # Already reported by the error listener
            failed = True
            continue
        failed = False
        if reply is not None:
            print_message(reply)

    return 1 if failed else 0


async def cmd_set_key(controller: ChatSessionController, args: argparse.Namespace) -> None:
    await controller.channel.update_settings({DEFAULT_CREDENTIAL_KEY: args.key})
    print("API key saved.")


async def cmd_activity(controller: ChatSessionController, args: argparse.Namespace) -> None:
    entries = await controller.channel.get_activity_logs(limit=args.limit)
    for entry in entries:
        created = entry.created_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{colorize(created, Colors.DIM)} {entry.username:<12} "
              f"{colorize(entry.action, Colors.YELLOW):<8} {entry.description}")


COMMANDS = {
    "list": cmd_list,
    "new": cmd_new,
    "delete": cmd_delete,
    "history": cmd_history,
    "send": cmd_send,
    "chat": cmd_chat,
    "set-key": cmd_set_key,
    "activity": cmd_activity,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatdesk",
        description="Chat with the chatdesk assistant from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default=os.getenv("CHATDESK_API_URL", DEFAULT_API_URL),
        help="API root URL",
    )
    parser.add_argument(
        "--user",
        default=os.getenv("USER", "system"),
        help="Name recorded in the activity log",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    subparsers.add_parser("list", help="List conversations")

    new = subparsers.add_parser("new", help="Create a conversation")
    new.add_argument("title")

    delete = subparsers.add_parser("delete", help="Delete a conversation")
    delete.add_argument("conversation_id", type=int)

    history = subparsers.add_parser("history", help="Show a conversation")
    history.add_argument("conversation_id", type=int)

    send = subparsers.add_parser("send", help="Send one message")
    send.add_argument("conversation_id", type=int)
    send.add_argument("text")

    chat = subparsers.add_parser("chat", help="Chat interactively")
    chat.add_argument("conversation_id", type=int)

    set_key = subparsers.add_parser("set-key", help="Store the Google AI API key")
    set_key.add_argument("key")

    activity = subparsers.add_parser("activity", help="Show the activity log")
    activity.add_argument("--limit", type=int, default=50)

    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one client command. Returns the process exit code."""
    controller = init_chat_controller(HttpChannel(args.url), actor=Actor(name=args.user))
    reporter = ErrorReporter()
    controller.subscribe(reporter)

    try:
        code = await COMMANDS[args.command](controller, args)
    except ChatError as e:
        if not reporter.failed:
            print(colorize(f"Error: {e}", Colors.RED), file=sys.stderr)
        return 1
    finally:
        await shutdown_chat_controller()

    if code is not None:
        return code
    return 1 if reporter.failed else 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = "DEBUG" if args.verbose else os.getenv("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("chatdesk.main:app", host=args.host, port=args.port)
        return 0

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
