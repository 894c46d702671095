from __future__ import annotations

import asyncio

import pytest

from flagsync.core.config import Settings
from flagsync.core.errors import ParseError, ServiceFailure, SourceUnreachable
from flagsync.core.eval import JsonEvaluator
from flagsync.core.providers import ProviderSet
from flagsync.core.runtime import Runtime, RuntimeState
from flagsync.core.sync import EventType
from tests.fixtures.fake_providers import (
    ExitingService,
    FailingService,
    ScriptedSync,
    SlowSync,
    StubbornService,
    WaitingService,
)

P1 = b'{"flags":{}}'
P2 = b'{"flags":{"a":{"state":"ENABLED","variants":{"on":true,"off":false},"defaultVariant":"on"}}}'


def _runtime(sync, service=None, shutdown_timeout=1.0):
    providers = ProviderSet(
        sync=sync,
        evaluator=JsonEvaluator(),
        service=service or WaitingService(),
    )
    settings = Settings(uri=sync.uri, shutdown_timeout_seconds=shutdown_timeout)
    return Runtime(providers, settings)


async def _eventually(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestStartup:
    @pytest.mark.asyncio
    async def test_unreachable_source_is_fatal(self):
        runtime = _runtime(ScriptedSync([SourceUnreachable("connection refused")]))
        with pytest.raises(SourceUnreachable):
            await runtime.run()
        assert runtime.state is RuntimeState.TERMINATED
        assert not runtime.reached(RuntimeState.LOADED)
        assert not runtime.reached(RuntimeState.RUNNING)

    @pytest.mark.asyncio
    async def test_malformed_initial_payload_is_fatal(self):
        runtime = _runtime(ScriptedSync([b"{oops"]))
        with pytest.raises(ParseError):
            await runtime.run()
        assert runtime.state is RuntimeState.TERMINATED
        assert not runtime.reached(RuntimeState.RUNNING)

    @pytest.mark.asyncio
    async def test_stop_during_initial_fetch_never_starts_service(self):
        sync = SlowSync([P1], delay=5.0)
        service = WaitingService()
        runtime = _runtime(sync, service)
        loop = asyncio.get_running_loop()

        task = asyncio.create_task(runtime.run())
        await asyncio.sleep(0.1)
        started = loop.time()
        runtime.request_stop()
        await asyncio.wait_for(task, timeout=2)

        assert loop.time() - started < 1.0
        assert sync.cancelled
        assert runtime.state is RuntimeState.TERMINATED
        assert not runtime.reached(RuntimeState.LOADED)
        assert not runtime.reached(RuntimeState.RUNNING)
        assert not service.started.is_set()

    @pytest.mark.asyncio
    async def test_stop_requested_before_run(self):
        service = WaitingService()
        runtime = _runtime(ScriptedSync([P1]), service)
        runtime.request_stop()
        await asyncio.wait_for(runtime.run(), timeout=2)

        assert runtime.state is RuntimeState.TERMINATED
        assert not runtime.reached(RuntimeState.RUNNING)
        assert not service.started.is_set()

    @pytest.mark.asyncio
    async def test_service_starts_after_flags_are_loaded(self):
        service = WaitingService()
        runtime = _runtime(ScriptedSync([P2]), service)
        task = asyncio.create_task(runtime.run())
        await asyncio.wait_for(service.started.wait(), timeout=2)

        assert runtime.reached(RuntimeState.LOADED)
        assert service.evaluator is runtime.evaluator
        assert service.evaluator.resolve_boolean("a").value is True

        runtime.request_stop()
        await asyncio.wait_for(task, timeout=2)


class TestShutdown:
    @pytest.mark.asyncio
    async def test_stop_request_terminates_cleanly(self):
        service = WaitingService()
        runtime = _runtime(ScriptedSync([P1]), service)
        task = asyncio.create_task(runtime.run())
        await asyncio.wait_for(runtime.wait_for_state(RuntimeState.RUNNING), timeout=2)

        runtime.request_stop()
        await asyncio.wait_for(task, timeout=2)

        assert runtime.state is RuntimeState.TERMINATED
        assert runtime.reached(RuntimeState.SHUTTING_DOWN)
        assert service.stopped

    @pytest.mark.asyncio
    async def test_service_failure_shuts_everything_down(self):
        runtime = _runtime(ScriptedSync([P1]), FailingService())
        with pytest.raises(ServiceFailure, match="listener closed"):
            await asyncio.wait_for(runtime.run(), timeout=2)
        assert runtime.state is RuntimeState.TERMINATED
        assert runtime.stop_event.is_set()

    @pytest.mark.asyncio
    async def test_service_returning_early_is_a_failure(self):
        runtime = _runtime(ScriptedSync([P1]), ExitingService())
        with pytest.raises(ServiceFailure, match="exited before shutdown"):
            await asyncio.wait_for(runtime.run(), timeout=2)
        assert runtime.state is RuntimeState.TERMINATED

    @pytest.mark.asyncio
    async def test_unresponsive_service_is_cancelled_after_timeout(self):
        service = StubbornService()
        runtime = _runtime(ScriptedSync([P1]), service, shutdown_timeout=0.1)
        task = asyncio.create_task(runtime.run())
        await asyncio.wait_for(runtime.wait_for_state(RuntimeState.RUNNING), timeout=2)

        runtime.request_stop()
        await asyncio.wait_for(task, timeout=2)

        assert service.cancelled
        assert runtime.state is RuntimeState.TERMINATED


class TestReload:
    @pytest.mark.asyncio
    async def test_change_event_reloads_evaluator(self):
        # initial fetch, first watch poll, refetch after CREATE
        sync = ScriptedSync([P1, P1, P2])
        runtime = _runtime(sync)
        task = asyncio.create_task(runtime.run())
        try:
            await _eventually(lambda: "a" in runtime.evaluator.flag_keys())
            assert runtime.recent_events[0].type is EventType.CREATE
        finally:
            runtime.request_stop()
            await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_delete_keeps_previous_flags(self):
        sync = ScriptedSync([P2, P2, b""])
        runtime = _runtime(sync)
        task = asyncio.create_task(runtime.run())
        try:
            await _eventually(
                lambda: EventType.DELETE in [e.type for e in runtime.recent_events]
            )
            await asyncio.sleep(0.05)
            assert runtime.evaluator.revision == 1
            assert runtime.evaluator.resolve_boolean("a").value is True
            assert runtime.state is RuntimeState.RUNNING
        finally:
            runtime.request_stop()
            await asyncio.wait_for(task, timeout=2)

        delete_events = [e for e in runtime.recent_events if e.type is EventType.DELETE]
        assert len(delete_events) == 1

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_running(self):
        sync = ScriptedSync([P2, P1, SourceUnreachable("connection reset")])
        runtime = _runtime(sync)
        task = asyncio.create_task(runtime.run())
        try:
            await _eventually(lambda: sync.fetch_count >= 5)
            assert runtime.state is RuntimeState.RUNNING
            assert runtime.evaluator.revision == 1
        finally:
            runtime.request_stop()
            await asyncio.wait_for(task, timeout=2)
