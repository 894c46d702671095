"""Runtime orchestration.

Lifecycle:
    INITIALIZING -> LOADED -> RUNNING -> SHUTTING_DOWN -> TERMINATED
    INITIALIZING -> TERMINATED (startup failure or stop during startup)

Startup fetches and loads the flag payload once; failure there is fatal.
While running, three tasks share one stop event: the sync source's watch
loop, a consumer that re-fetches and reloads on every notification, and the
service. A fatal error from any of them, or the stop event, shuts all of
them down.
"""

from __future__ import annotations

import asyncio
import collections
import contextlib
import logging
from enum import Enum
from typing import TYPE_CHECKING, Deque, Dict, Iterable, List, Optional

from flagsync.core.errors import ParseError, ServiceFailure, SourceUnreachable
from flagsync.core.sync.events import NotificationEvent
from flagsync.utils.metrics import runtime_state

if TYPE_CHECKING:
    from flagsync.core.config import Settings
    from flagsync.core.providers.bootstrap import ProviderSet

logger = logging.getLogger(__name__)

EVENT_HISTORY_SIZE = 100


class RuntimeState(str, Enum):
    INITIALIZING = "initializing"
    LOADED = "loaded"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class Runtime:
    """Composes one sync source, one evaluator and one service."""

    def __init__(self, providers: "ProviderSet", settings: "Settings"):
        self.sync = providers.sync
        self.evaluator = providers.evaluator
        self.service = providers.service
        self.settings = settings

        self.stop_event = asyncio.Event()
        self._state = RuntimeState.INITIALIZING
        self._reached: Dict[RuntimeState, asyncio.Event] = {
            state: asyncio.Event() for state in RuntimeState
        }
        self._reached[RuntimeState.INITIALIZING].set()
        self._events: Deque[NotificationEvent] = collections.deque(maxlen=EVENT_HISTORY_SIZE)
        self._publish_state()

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def recent_events(self) -> List[NotificationEvent]:
        """Notification events consumed so far, oldest first."""
        return list(self._events)

    def reached(self, state: RuntimeState) -> bool:
        return self._reached[state].is_set()

    async def wait_for_state(self, state: RuntimeState) -> None:
        await self._reached[state].wait()

    def request_stop(self) -> None:
        self.stop_event.set()

    def _publish_state(self) -> None:
        for state in RuntimeState:
            runtime_state.labels(state=state.value).set(1 if state is self._state else 0)

    def _transition(self, state: RuntimeState) -> None:
        logger.info("Runtime %s -> %s", self._state.value, state.value)
        self._state = state
        self._reached[state].set()
        self._publish_state()

    async def run(self) -> None:
        """Run until stopped.

        Returns normally after a stop request; re-raises the first fatal error
        otherwise.
        """
        try:
            loaded = await self._initialize()
        except BaseException:
            self._transition(RuntimeState.TERMINATED)
            raise
        if not loaded:
            logger.info("Stop requested during startup")
            self._transition(RuntimeState.TERMINATED)
            return

        events: "asyncio.Queue[NotificationEvent]" = asyncio.Queue()
        self._transition(RuntimeState.RUNNING)
        watch_task = self.sync.watch(events, self.stop_event)
        consumer_task = asyncio.create_task(self._consume(events), name="notification-consumer")
        serve_task = asyncio.create_task(
            self.service.serve(self.evaluator, self.stop_event), name="service"
        )
        stop_task = asyncio.create_task(self.stop_event.wait(), name="stop")
        workers = (watch_task, consumer_task, serve_task)

        fatal: Optional[BaseException] = None
        try:
            done, _ = await asyncio.wait(
                {*workers, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
            fatal = self._first_failure(task for task in workers if task in done)
        finally:
            self._transition(RuntimeState.SHUTTING_DOWN)
            self.stop_event.set()
            shutdown_error = await self._shutdown(watch_task, consumer_task, serve_task, stop_task)
            self._transition(RuntimeState.TERMINATED)

        fatal = fatal or shutdown_error
        if fatal is not None:
            logger.error("Runtime stopped on fatal error: %s", fatal)
            raise fatal
        logger.info("Runtime stopped cleanly")

    async def _initialize(self) -> bool:
        """Initial fetch and load, abandoned if stop is requested first.

        Returns False when stopped before the flags were loaded.
        """
        load_task = asyncio.create_task(self._load_initial(), name="initial-load")
        stop_task = asyncio.create_task(self.stop_event.wait(), name="stop")
        try:
            await asyncio.wait({load_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if not load_task.done():
                load_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await load_task

        if load_task.cancelled():
            return False
        load_task.result()
        self._transition(RuntimeState.LOADED)
        return not self.stop_event.is_set()

    async def _load_initial(self) -> None:
        logger.info("Fetching initial flag configuration from %s", self.sync.uri)
        payload = await self.sync.fetch()
        self.evaluator.load(payload)

    def _first_failure(self, tasks: Iterable["asyncio.Task"]) -> Optional[BaseException]:
        for task in tasks:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                return exc
            if not self.stop_event.is_set():
                return ServiceFailure(f"{task.get_name()} exited before shutdown was requested")
        return None

    async def _shutdown(
        self,
        watch_task: "asyncio.Task",
        consumer_task: "asyncio.Task",
        serve_task: "asyncio.Task",
        stop_task: "asyncio.Task",
    ) -> Optional[BaseException]:
        for task in (watch_task, consumer_task, stop_task):
            task.cancel()

        _, pending = await asyncio.wait(
            {serve_task}, timeout=self.settings.shutdown_timeout_seconds
        )
        if pending:
            logger.warning(
                "Service did not stop within %.1fs, cancelling",
                self.settings.shutdown_timeout_seconds,
            )
            serve_task.cancel()

        results = await asyncio.gather(
            watch_task, consumer_task, serve_task, stop_task, return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                return result
        return None

    async def _consume(self, events: "asyncio.Queue[NotificationEvent]") -> None:
        while True:
            event = await events.get()
            try:
                self._events.append(event)
                await self._reload(event)
            finally:
                events.task_done()

    async def _reload(self, event: NotificationEvent) -> None:
        logger.info("Received %s event from %s, refetching", event.type.value, self.sync.name)
        try:
            payload = await self.sync.fetch()
        except SourceUnreachable as exc:
            logger.warning("Refetch after %s event failed: %s", event.type.value, exc)
            return
        try:
            self.evaluator.load(payload)
        except ParseError as exc:
            logger.warning(
                "Keeping flag revision %d: %s", self.evaluator.revision, exc
            )
