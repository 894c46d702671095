"""End-to-end runs with real providers."""

from __future__ import annotations

import asyncio
import json
import os
import signal
import socket

import httpx
import pytest
from fastapi.testclient import TestClient

from flagsync import main as cli
from flagsync.core.config import Settings
from flagsync.core.eval import JsonEvaluator
from flagsync.core.providers import ProviderSet, build_providers
from flagsync.core.runtime import (
    Runtime,
    RuntimeState,
    install_signal_handlers,
    remove_signal_handlers,
)
from flagsync.core.service import create_app
from flagsync.core.sync import EventType, HttpSync
from tests.fixtures.fake_providers import WaitingService


def _closed_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.mark.asyncio
async def test_filepath_runtime_stops_on_sigint(tmp_path):
    path = tmp_path / "flags.json"
    path.write_text('{"flags":{}}')
    settings = Settings(uri=str(path), host="127.0.0.1", port=0, file_poll_interval_seconds=0.05)
    runtime = Runtime(build_providers(settings), settings)

    install_signal_handlers(runtime.stop_event)
    try:
        task = asyncio.create_task(runtime.run())
        await asyncio.wait_for(runtime.wait_for_state(RuntimeState.RUNNING), timeout=5)
        assert runtime.evaluator.flag_keys() == []

        os.kill(os.getpid(), signal.SIGINT)
        await asyncio.wait_for(task, timeout=10)
    finally:
        remove_signal_handlers()

    assert runtime.state is RuntimeState.TERMINATED


@pytest.mark.asyncio
async def test_run_start_returns_zero_on_sigterm(tmp_path):
    path = tmp_path / "flags.json"
    path.write_text('{"flags":{}}')
    settings = Settings(uri=str(path), host="127.0.0.1", port=0)

    task = asyncio.create_task(cli.run_start(settings))
    await asyncio.sleep(0.5)
    os.kill(os.getpid(), signal.SIGTERM)
    assert await asyncio.wait_for(task, timeout=10) == 0


def test_unreachable_remote_exits_before_running(monkeypatch):
    monkeypatch.setattr(cli, "setup_structured_logging", lambda **kwargs: None)
    url = f"http://127.0.0.1:{_closed_port()}/flags.json"
    assert cli.main(["start", "-y", "remote", "-f", url, "-p", "0"]) == 1


@pytest.mark.asyncio
async def test_remote_source_emptied_keeps_serving_last_flags():
    document = {
        "flags": {
            "new-welcome-banner": {
                "state": "ENABLED",
                "variants": {"on": True, "off": False},
                "defaultVariant": "on",
            }
        }
    }
    body = json.dumps(document).encode("utf-8")
    # initial fetch, first poll (CREATE) and its refetch; empty afterwards
    responses = [body, body, body, b""]

    def handler(request: httpx.Request) -> httpx.Response:
        content = responses.pop(0) if len(responses) > 1 else responses[0]
        return httpx.Response(200, content=content)

    sync = HttpSync(
        "https://config.example.com/flags.json",
        poll_interval_seconds=0.02,
        transport=httpx.MockTransport(handler),
    )
    providers = ProviderSet(sync=sync, evaluator=JsonEvaluator(), service=WaitingService())
    runtime = Runtime(providers, Settings(uri=sync.uri))

    task = asyncio.create_task(runtime.run())
    try:
        for _ in range(200):
            if EventType.DELETE in [event.type for event in runtime.recent_events]:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.2)
    finally:
        runtime.request_stop()
        await asyncio.wait_for(task, timeout=5)

    types = [event.type for event in runtime.recent_events]
    assert types.count(EventType.DELETE) == 1
    assert types[0] is EventType.CREATE

    client = TestClient(create_app(runtime.evaluator))
    response = client.post("/flags/new-welcome-banner/resolve/boolean")
    assert response.status_code == 200
    assert response.json()["value"] is True
