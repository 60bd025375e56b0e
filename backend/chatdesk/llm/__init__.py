"""Reply generation."""

from chatdesk.llm.gemini_client import GeminiClient, get_gemini_client

__all__ = ["GeminiClient", "get_gemini_client"]
