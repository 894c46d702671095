"""Process signal wiring for graceful shutdown."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Tuple

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)


def install_signal_handlers(stop: asyncio.Event) -> None:
    """Set ``stop`` when SIGINT or SIGTERM arrives."""
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down", sig.name)
        stop.set()

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, signal_handler, sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except NotImplementedError:
            pass
