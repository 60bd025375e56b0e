"""chatdesk: conversations with an AI assistant."""

__version__ = "0.1.0"
