"""Local file sync source.

Changes are picked up from OS file notifications (via ``watchfiles``) on the
file's directory, so editors that replace the file by rename are seen too.
Every notification, and every quiet poll interval, re-reads the file and
compares fingerprints, so touching a file without changing it emits nothing.
Where notifications cannot be set up the source falls back to plain polling.
A file that disappears while watched is reported as an empty payload (DELETE).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change, awatch

from flagsync.core.errors import SourceUnreachable
from flagsync.core.providers.registry import SYNC, ProviderRegistry
from flagsync.core.sync.base import SyncSource
from flagsync.core.sync.events import NotificationEvent

if TYPE_CHECKING:
    from flagsync.core.config import Settings

logger = logging.getLogger(__name__)

# Longest a burst of file changes is collected before the source re-reads
NOTIFY_DEBOUNCE_MS = 200


@ProviderRegistry.register(SYNC, "filepath")
class FilePathSync(SyncSource):
    def __init__(
        self,
        uri: str,
        poll_interval_seconds: float = 1.0,
        use_notifications: bool = True,
    ):
        super().__init__(uri, poll_interval_seconds)
        self.path = Path(uri).expanduser()
        self.use_notifications = use_notifications

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FilePathSync":
        return cls(
            settings.uri,
            poll_interval_seconds=settings.file_poll_interval_seconds,
            use_notifications=settings.file_watch_notifications,
        )

    async def fetch(self) -> bytes:
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as exc:
            raise SourceUnreachable(
                f"unable to read {self.path}: {exc}", provider=self.name
            ) from exc

    async def _poll(self) -> bytes:
        try:
            return await self.fetch()
        except SourceUnreachable as exc:
            if isinstance(exc.__cause__, FileNotFoundError):
                logger.warning("Flag file %s no longer exists", self.path)
                return b""
            raise

    async def _watch_loop(
        self,
        events: "asyncio.Queue[NotificationEvent]",
        stop: asyncio.Event,
    ) -> None:
        if not self.use_notifications:
            await super()._watch_loop(events, stop)
            return

        self._reset_watch_state()
        logger.info(
            "Watching %s for change notifications", self.path,
            extra={"extra_fields": {"provider": self.name}},
        )
        await self._tick(events)
        try:
            await self._notify_loop(events, stop)
        except (OSError, RuntimeError) as exc:
            logger.warning(
                "File notifications unavailable for %s (%s), polling every %.2fs",
                self.path, exc, self.poll_interval_seconds,
            )
            await self._poll_loop(events, stop)
        logger.debug("Watch loop for %s stopped", self.uri)

    def _is_watched_file(self, change: Change, path: str) -> bool:
        return Path(path).name == self.path.name

    async def _notify_loop(
        self,
        events: "asyncio.Queue[NotificationEvent]",
        stop: asyncio.Event,
    ) -> None:
        # A quiet interval yields an empty batch, which doubles as a poll tick
        async for _changes in awatch(
            self.path.parent,
            watch_filter=self._is_watched_file,
            debounce=NOTIFY_DEBOUNCE_MS,
            stop_event=stop,
            rust_timeout=max(1, int(self.poll_interval_seconds * 1000)),
            yield_on_timeout=True,
            recursive=False,
        ):
            await self._tick(events)
