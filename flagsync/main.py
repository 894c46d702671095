"""flagsync - command line entry point.

    flagsync start --uri ./flags.json
    flagsync start -y remote -f https://config.example.com/flags.json -b $TOKEN
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from flagsync import __version__
from flagsync.core.config import Settings
from flagsync.core.errors import FlagSyncError
from flagsync.core.logging import setup_structured_logging
from flagsync.core.providers import build_providers
from flagsync.core.runtime import Runtime, install_signal_handlers, remove_signal_handlers

logger = logging.getLogger(__name__)

# argparse dest -> Settings field
_SETTINGS_ARGS = {
    "port": "port",
    "socketpath": "socket_path",
    "service_provider": "service_provider",
    "sync_provider": "sync_provider",
    "evaluator": "evaluator",
    "uri": "uri",
    "bearer_token": "bearer_token",
    "log_level": "log_level",
    "log_json": "log_json",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flagsync",
        description="Sync feature flag definitions and serve evaluations",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Start flagsync")
    start.add_argument("-p", "--port", type=int, help="Port to listen on (default 8080)")
    start.add_argument("-d", "--socketpath", help="Serve on this unix socket instead of a port")
    start.add_argument(
        "-s", "--service-provider", help="Set a service provider e.g. http (default http)"
    )
    start.add_argument(
        "-y", "--sync-provider",
        help="Set a sync provider e.g. filepath or remote (default filepath)",
    )
    start.add_argument("-e", "--evaluator", help="Set an evaluator e.g. json (default json)")
    start.add_argument(
        "-f", "--uri",
        help="Sync provider uri to read data from; a filepath or url",
    )
    start.add_argument("-b", "--bearer-token", help="Bearer token to use for remote sync")
    start.add_argument("--log-level", help="Log level (default INFO)")
    start.add_argument(
        "--log-json", action=argparse.BooleanOptionalAction, default=None,
        help="Emit JSON formatted logs (default on)",
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Command line values override FLAGSYNC_* environment settings."""
    overrides: Dict[str, Any] = {}
    for dest, field_name in _SETTINGS_ARGS.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides[field_name] = value
    return Settings(**overrides)


async def run_start(settings: Settings) -> int:
    try:
        providers = build_providers(settings)
    except FlagSyncError as exc:
        logger.error("Unable to configure providers: %s", exc)
        return 1

    runtime = Runtime(providers, settings)
    install_signal_handlers(runtime.stop_event)
    try:
        await runtime.run()
    except FlagSyncError as exc:
        logger.error(
            "flagsync terminated: %s", exc, extra={"extra_fields": exc.to_dict()}
        )
        return 1
    except Exception:
        logger.exception("flagsync terminated on an unexpected error")
        return 1
    finally:
        remove_signal_handlers()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ValidationError as exc:
        parser.error(f"invalid settings: {exc}")
    if not settings.uri:
        parser.error("a sync uri is required (--uri or FLAGSYNC_URI)")

    setup_structured_logging(level=settings.log_level, json_output=settings.log_json)
    return asyncio.run(run_start(settings))


if __name__ == "__main__":
    sys.exit(main())
