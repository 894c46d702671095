"""Service abstraction.

A service exposes an evaluator over some transport. ``serve`` blocks until
``stop`` is set (then returns ``None``) or raises ``ServiceFailure`` when the
transport dies on its own.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod

from flagsync.core.eval.base import Evaluator
from flagsync.core.providers.base import BaseProvider


class Service(BaseProvider):
    @abstractmethod
    async def serve(self, evaluator: Evaluator, stop: asyncio.Event) -> None:
        """Serve evaluation requests until stop is set."""
