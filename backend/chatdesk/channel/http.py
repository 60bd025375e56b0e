"""HTTP channel that talks to the chatdesk command API."""

import logging
import os
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from chatdesk.channel.base import RemoteChannel
from chatdesk.chat.errors import TransportError
from chatdesk.models import (
    ActivityLog,
    ActivityLogCreate,
    Conversation,
    CreateConversationResponse,
    Message,
    SendMessageRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000/api/v1"
DEFAULT_TIMEOUT = 60.0  # seconds; replies can take a while to generate

# Status codes worth retrying by the caller
RETRIABLE_STATUS_CODES = (429, 500, 502, 503, 504)

# Response payload validators
CONVERSATION_LIST = TypeAdapter(list[Conversation])
MESSAGE_LIST = TypeAdapter(list[Message])
ACTIVITY_LIST = TypeAdapter(list[ActivityLog])
MESSAGE = TypeAdapter(Message)
CREATED = TypeAdapter(CreateConversationResponse)
SETTINGS = TypeAdapter(dict[str, str | None])


class HttpChannel(RemoteChannel):
    """Channel over the FastAPI command API.

    Connection failures, timeouts and non-2xx responses are raised as
    ``TransportError``; the server's ``detail`` becomes the message.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the channel.

        Args:
            base_url: API root. Defaults to CHATDESK_API_URL or localhost.
            timeout: Request timeout in seconds. Defaults to CHATDESK_TIMEOUT.
            client: Preconfigured client (its base URL must point at the API
                root). The channel closes it on close().
        """
        if client is None:
            base_url = base_url or os.getenv("CHATDESK_API_URL", DEFAULT_API_URL)
            if timeout is None:
                timeout = float(os.getenv("CHATDESK_TIMEOUT", str(DEFAULT_TIMEOUT)))
            client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self._client = client

    async def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request timed out: {method} {path}",
                operation=operation,
                retriable=True,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Network error: {e}", operation=operation, retriable=True
            ) from e

        if response.is_error:
            raise TransportError(
                self._error_detail(response),
                operation=operation,
                status_code=response.status_code,
                retriable=response.status_code in RETRIABLE_STATUS_CODES,
            )

        logger.debug(f"{method} {path} -> {response.status_code}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON in response to {method} {path}",
                operation=operation,
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            detail = response.json().get("detail")
        except (ValueError, AttributeError):
            detail = None
        if isinstance(detail, str) and detail:
            return detail
        return f"API Error: HTTP {response.status_code}"

    @staticmethod
    def _parse(operation: str, adapter: TypeAdapter, data: Any) -> Any:
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            raise TransportError(
                f"Unexpected response payload: {e}", operation=operation
            ) from e

    async def get_conversations(self) -> list[Conversation]:
        data = await self._request("get_conversations", "GET", "/conversations")
        return self._parse("get_conversations", CONVERSATION_LIST, data)

    async def get_messages(self, conversation_id: int) -> list[Message]:
        data = await self._request(
            "get_messages", "GET", f"/conversations/{conversation_id}/messages"
        )
        return self._parse("get_messages", MESSAGE_LIST, data)

    async def create_conversation(self, title: str) -> int:
        data = await self._request(
            "create_conversation", "POST", "/conversations", json={"title": title}
        )
        response = self._parse("create_conversation", CREATED, data)
        return response.id

    async def delete_conversation(self, conversation_id: int) -> None:
        await self._request(
            "delete_conversation", "DELETE", f"/conversations/{conversation_id}"
        )

    async def send_chat_message(
        self,
        conversation_id: int,
        user_message: str,
        credential: str,
    ) -> Message:
        body = SendMessageRequest(user_message=user_message, api_key=credential)
        data = await self._request(
            "send_chat_message",
            "POST",
            f"/conversations/{conversation_id}/messages",
            json=body.model_dump(),
        )
        return self._parse("send_chat_message", MESSAGE, data)

    async def get_settings(self) -> dict[str, str]:
        data = await self._request("get_settings", "GET", "/settings")
        settings = self._parse("get_settings", SETTINGS, data)
        return {key: value or "" for key, value in settings.items()}

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
        await self._request("log_activity", "POST", "/activity", json=entry.model_dump())

    async def update_settings(self, settings: dict[str, str]) -> None:
        await self._request("update_settings", "PUT", "/settings", json=settings)

    async def get_activity_logs(
        self, limit: int = 50, offset: int = 0
    ) -> list[ActivityLog]:
        data = await self._request(
            "get_activity_logs",
            "GET",
            "/activity",
            params={"limit": limit, "offset": offset},
        )
        return self._parse("get_activity_logs", ACTIVITY_LIST, data)

    async def close(self) -> None:
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"<HttpChannel base_url={str(self._client.base_url)!r}>"
