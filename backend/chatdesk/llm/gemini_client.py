"""Gemini client wrapper for chat replies."""

import asyncio
import logging
import os

from google import genai
from google.genai import types

from chatdesk.models import Message, Sender

logger = logging.getLogger(__name__)

# Default retry configuration
MAX_RETRIES = 3
RETRY_DELAY = 1.0  # seconds
RETRY_MULTIPLIER = 2.0

# Model to use
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

# Returned when the model produces no text
EMPTY_REPLY = "No response from AI."


class GeminiClient:
    """Wrapper around Google GenAI client for conversational replies."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        """Initialize the client.

        Args:
            api_key: Google API key. If not provided, uses GOOGLE_API_KEY env var.
            model: Model name. Defaults to GEMINI_MODEL.
        """
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Google API key required. Set it in Settings, set the "
                "GOOGLE_API_KEY environment variable or pass api_key parameter."
            )
        self.model = model or GEMINI_MODEL
        self._client = genai.Client(api_key=self.api_key)

    @staticmethod
    def build_contents(history: list[Message]) -> list[types.Content]:
        """Map a message history to Gemini contents (roles user/model)."""
        return [
            types.Content(
                role="user" if message.sender == Sender.USER else "model",
                parts=[types.Part(text=message.content)],
            )
            for message in history
        ]

    async def generate_reply(
        self,
        history: list[Message],
        system: str | None = None,
        temperature: float = 0.8,
        max_tokens: int = 2048,
    ) -> str:
        """Generate the next reply in a conversation.

        Args:
            history: Messages so far, oldest first, ending with the user turn
            system: Optional system instruction
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response

        Returns:
            Reply text
        """
        last_error: Exception | None = None
        delay = RETRY_DELAY
        contents = self.build_contents(history)

        for attempt in range(MAX_RETRIES):
            try:
                config = types.GenerateContentConfig(
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                    system_instruction=system,
                )

                response = await self._client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                )

                text = (response.text or "").strip()
                return text or EMPTY_REPLY

            except Exception as e:
                # Check if it's a retryable error
                error_str = str(e).lower()
                if (
                    "rate" in error_str
                    or "limit" in error_str
                    or "429" in error_str
                    or "500" in error_str
                    or "503" in error_str
                ):
                    last_error = e
                    logger.warning(
                        f"Gemini error (attempt {attempt + 1}/{MAX_RETRIES}), "
                        f"retrying in {delay}s: {e}"
                    )
                    await asyncio.sleep(delay)
                    delay *= RETRY_MULTIPLIER
                else:
                    raise

        raise last_error or RuntimeError("Unexpected retry failure")


# Singleton instance (lazy initialization)
_gemini_client: GeminiClient | None = None


def get_gemini_client(api_key: str) -> GeminiClient:
    """Get the Gemini client, replacing it when the API key changes."""
    global _gemini_client
    if _gemini_client is None or _gemini_client.api_key != api_key:
        _gemini_client = GeminiClient(api_key=api_key)
    return _gemini_client
