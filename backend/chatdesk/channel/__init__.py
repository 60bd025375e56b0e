"""Remote command channels used by the chat session controller."""

from chatdesk.channel.base import RemoteChannel
from chatdesk.channel.http import HttpChannel
from chatdesk.channel.local import LocalChannel

__all__ = ["HttpChannel", "LocalChannel", "RemoteChannel"]
