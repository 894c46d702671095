import json
import os

import pytest


@pytest.fixture(autouse=True)
def env_isolation(monkeypatch):
    """Isolate FLAGSYNC_* environment variables between tests."""
    for key in list(os.environ):
        if key.upper().startswith("FLAGSYNC_"):
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def flag_document() -> dict:
    return {
        "flags": {
            "new-welcome-banner": {
                "state": "ENABLED",
                "variants": {"on": True, "off": False},
                "defaultVariant": "on",
            },
            "header-color": {
                "state": "ENABLED",
                "variants": {"red": "#FF0000", "blue": "#0000FF"},
                "defaultVariant": "blue",
            },
            "discount-percentage": {
                "state": "ENABLED",
                "variants": {"low": 5, "high": 12.5},
                "defaultVariant": "high",
            },
            "theme-config": {
                "state": "ENABLED",
                "variants": {"dark": {"background": "black"}},
                "defaultVariant": "dark",
            },
            "legacy-checkout": {
                "state": "DISABLED",
                "variants": {"on": True, "off": False},
                "defaultVariant": "off",
            },
        }
    }


@pytest.fixture
def flag_payload(flag_document) -> bytes:
    return json.dumps(flag_document).encode("utf-8")
