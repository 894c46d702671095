"""Sync source abstraction.

A sync source performs one-shot fetches of the flag payload and runs a watch
loop that fingerprints each polled payload and queues a NotificationEvent
when it changes. The stored fingerprint belongs to the watch loop alone.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
from abc import abstractmethod
from typing import Optional

from flagsync.core.errors import ConfigurationError, SourceUnreachable
from flagsync.core.providers.base import BaseProvider
from flagsync.core.sync.events import EventType, NotificationEvent
from flagsync.utils.metrics import sync_events_total, sync_fetch_errors_total

logger = logging.getLogger(__name__)


def fingerprint(payload: bytes) -> str:
    """SHA-1 of the payload, URL-safe base64 encoded."""
    digest = hashlib.sha1(payload, usedforsecurity=False).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


class SyncSource(BaseProvider):
    """Base class for flag payload sources."""

    def __init__(self, uri: str, poll_interval_seconds: float):
        super().__init__()
        if not uri:
            raise ConfigurationError(
                f"{self.__class__.__name__} requires a uri", provider=self.provider_name
            )
        if poll_interval_seconds <= 0:
            raise ConfigurationError("poll interval must be positive", provider=self.provider_name)
        self.uri = uri
        self.poll_interval_seconds = poll_interval_seconds
        self._fingerprint: Optional[str] = None
        self._source_empty = False

    @property
    def last_fingerprint(self) -> Optional[str]:
        return self._fingerprint

    @abstractmethod
    async def fetch(self) -> bytes:
        """Read the complete current payload.

        Raises:
            SourceUnreachable: the underlying read failed.
        """

    async def _poll(self) -> bytes:
        """Payload read used by the watch loop; variants may map errors."""
        return await self.fetch()

    def detect_change(self, payload: bytes) -> Optional[NotificationEvent]:
        """Compare payload against the stored fingerprint.

        An empty payload reports DELETE once per disappearance and leaves the
        stored fingerprint untouched, so content that comes back is compared
        against the last known-good state.
        """
        if not payload:
            if self._source_empty:
                return None
            self._source_empty = True
            return NotificationEvent(EventType.DELETE, source=self.uri)

        self._source_empty = False
        current = fingerprint(payload)
        if self._fingerprint is None:
            self._fingerprint = current
            return NotificationEvent(EventType.CREATE, source=self.uri)
        if current != self._fingerprint:
            self._fingerprint = current
            return NotificationEvent(EventType.MODIFY, source=self.uri)
        return None

    def watch(
        self,
        events: "asyncio.Queue[NotificationEvent]",
        stop: asyncio.Event,
    ) -> "asyncio.Task[None]":
        """Start the watch loop and return its task without blocking.

        The loop exits once ``stop`` is set; the caller owns the task.
        """
        return asyncio.create_task(
            self._watch_loop(events, stop), name=f"sync-watch:{self.name}"
        )

    async def _watch_loop(
        self,
        events: "asyncio.Queue[NotificationEvent]",
        stop: asyncio.Event,
    ) -> None:
        self._reset_watch_state()
        logger.info(
            "Watching %s every %.2fs", self.uri, self.poll_interval_seconds,
            extra={"extra_fields": {"provider": self.name}},
        )
        await self._poll_loop(events, stop)
        logger.debug("Watch loop for %s stopped", self.uri)

    def _reset_watch_state(self) -> None:
        self._fingerprint = None
        self._source_empty = False

    async def _poll_loop(
        self,
        events: "asyncio.Queue[NotificationEvent]",
        stop: asyncio.Event,
    ) -> None:
        while not await self._wait_tick(stop):
            await self._tick(events)

    async def _wait_tick(self, stop: asyncio.Event) -> bool:
        """Sleep one polling interval; True when stop was requested."""
        try:
            await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _tick(self, events: "asyncio.Queue[NotificationEvent]") -> None:
        try:
            payload = await self._poll()
        except SourceUnreachable as exc:
            # Transient failures are not deletions: no event, retry next tick
            self.mark_degraded(str(exc))
            sync_fetch_errors_total.labels(source=self.name).inc()
            logger.error("Sync fetch failed for %s: %s", self.uri, exc)
            return

        self.mark_healthy()
        event = self.detect_change(payload)
        if event is None:
            return
        sync_events_total.labels(source=self.name, event=event.type.value).inc()
        logger.info("%s notifier event: %s on %s", self.name, event.type.value, self.uri)
        events.put_nowait(event)
