"""Lazily fetched, memoized credential for the remote send command."""

import asyncio
import logging

from chatdesk.channel.base import RemoteChannel
from chatdesk.chat.errors import MissingCredentialError

logger = logging.getLogger(__name__)

# Settings key the reply generator credential is stored under
DEFAULT_CREDENTIAL_KEY = "google_ai_key"


class CredentialCache:
    """Fetches the send credential from the settings map once and keeps it.

    The in-flight fetch is cached as well as the result, so concurrent first
    callers share a single ``get_settings`` round trip. An empty or absent
    value is never cached; the next call fetches again.
    """

    def __init__(self, channel: RemoteChannel, key: str = DEFAULT_CREDENTIAL_KEY):
        self._channel = channel
        self._key = key
        self._value: str | None = None
        self._fetch: asyncio.Task[str] | None = None

    @property
    def key(self) -> str:
        """Settings key holding the credential."""
        return self._key

    @property
    def is_cached(self) -> bool:
        """Whether a credential is held."""
        return self._value is not None

    async def get_credential(self) -> str:
        """Return the credential, fetching it on first use.

        Raises:
            MissingCredentialError: If the settings hold no usable value.
            TransportError: If the settings could not be fetched.
        """
        if self._value is not None:
            return self._value

        if self._fetch is None:
            self._fetch = asyncio.create_task(self._fetch_credential())

        fetch = self._fetch
        try:
            value = await asyncio.shield(fetch)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._forget(fetch)
            raise

        self._forget(fetch)
        if self._value is None:
            self._value = value
        return self._value

    async def _fetch_credential(self) -> str:
        settings = await self._channel.get_settings()
        value = (settings.get(self._key) or "").strip()
        if not value:
            logger.info(f"Credential '{self._key}' is not configured")
            raise MissingCredentialError(self._key)
        logger.debug(f"Fetched credential '{self._key}'")
        return value

    def _forget(self, fetch: asyncio.Task[str]) -> None:
        """Drop a finished fetch so the next call starts a new one."""
        if self._fetch is fetch:
            self._fetch = None
