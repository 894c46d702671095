"""Remote HTTP sync source.

Fetches the flag document with a GET request (``Accept: application/json``,
optional bearer token) and polls it on a fixed schedule. The response body is
returned byte-for-byte. ``timeout_seconds`` bounds the whole request, not each
connect or read step.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Dict, Optional

import httpx

from flagsync.core.errors import ConfigurationError, SourceUnreachable
from flagsync.core.providers.registry import SYNC, ProviderRegistry
from flagsync.core.sync.base import SyncSource

if TYPE_CHECKING:
    from flagsync.core.config import Settings

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_POLL_INTERVAL_SECONDS = 300.0


@ProviderRegistry.register(SYNC, "remote")
class HttpSync(SyncSource):
    def __init__(
        self,
        uri: str,
        bearer_token: str = "",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not uri:
            raise ConfigurationError("no HTTP URL string set", provider="remote")
        if not uri.startswith(("http://", "https://")):
            raise ConfigurationError(f"not an HTTP URL: {uri}", provider="remote")
        super().__init__(uri, poll_interval_seconds)
        self.bearer_token = bearer_token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: "Settings") -> "HttpSync":
        return cls(
            settings.uri,
            bearer_token=settings.bearer_token,
            timeout_seconds=settings.http_timeout_seconds,
            poll_interval_seconds=settings.remote_poll_interval_seconds,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers

    async def fetch(self) -> bytes:
        try:
            return await asyncio.wait_for(self._get(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise SourceUnreachable(
                f"{self.uri} did not respond within {self.timeout_seconds:g}s",
                provider=self.name,
            ) from exc

    async def _get(self) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                resp = await client.get(self.uri, headers=self._headers())
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPStatusError as exc:
            raise SourceUnreachable(
                f"{self.uri} responded with status {exc.response.status_code}",
                provider=self.name,
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise SourceUnreachable(
                f"unable to fetch {self.uri}: {exc!r}", provider=self.name
            ) from exc
