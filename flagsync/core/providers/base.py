"""Core provider abstractions.

Sync sources, evaluators and services all derive from ``BaseProvider`` so the
registry can validate and construct them uniformly from ``Settings``.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from flagsync.core.config import Settings


class ProviderStatus(str, Enum):
    """Provider runtime status."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class BaseProvider(ABC):
    """Common status bookkeeping for every provider kind."""

    # Set by ProviderRegistry.register
    provider_type: str = ""
    provider_name: str = ""

    def __init__(self) -> None:
        self._status = ProviderStatus.UNKNOWN
        self._last_error: Optional[str] = None
        self._last_status_change_at: Optional[float] = None

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: "Settings") -> "BaseProvider":
        """Build an instance from runtime settings."""

    @property
    def status(self) -> ProviderStatus:
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def name(self) -> str:
        return self.provider_name or self.__class__.__name__

    def mark_degraded(self, reason: str) -> None:
        self._status = ProviderStatus.DEGRADED
        self._last_error = reason
        self._last_status_change_at = time.time()

    def mark_healthy(self) -> None:
        if self._status is not ProviderStatus.HEALTHY:
            self._last_status_change_at = time.time()
        self._status = ProviderStatus.HEALTHY
        self._last_error = None

    def status_snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "provider_type": self.provider_type,
            "status": self.status.value,
            "last_error": self.last_error,
            "last_status_change_at": self._last_status_change_at,
        }
