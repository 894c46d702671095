"""Bootstrap helpers: register built-in providers and resolve the selection."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Tuple, cast

from flagsync.core.providers.registry import EVALUATOR, SERVICE, SYNC, ProviderRegistry

if TYPE_CHECKING:
    from flagsync.core.config import Settings
    from flagsync.core.eval.base import Evaluator
    from flagsync.core.service.base import Service
    from flagsync.core.sync.base import SyncSource

logger = logging.getLogger(__name__)

# Importing a module registers the providers it defines
BUILTIN_PROVIDER_MODULES: Tuple[str, ...] = (
    "flagsync.core.sync.filepath",
    "flagsync.core.sync.remote",
    "flagsync.core.eval.json_evaluator",
    "flagsync.core.service.http",
)


@dataclass(frozen=True)
class ProviderSet:
    """The providers selected for one process run."""

    sync: "SyncSource"
    evaluator: "Evaluator"
    service: "Service"


def bootstrap_builtin_providers() -> Dict[str, List[str]]:
    """Import built-in provider modules; returns the registered names per kind."""
    for module_name in BUILTIN_PROVIDER_MODULES:
        importlib.import_module(module_name)
    return {kind: ProviderRegistry.list_providers(kind) for kind in ProviderRegistry.list_kinds()}


def build_providers(settings: "Settings") -> ProviderSet:
    """Resolve and construct the configured providers.

    Raises:
        ProviderNotFound: a selection names no registered provider.
        ConfigurationError: a provider rejected its settings.
    """
    bootstrap_builtin_providers()

    service = ProviderRegistry.create(SERVICE, settings.service_provider, settings)
    logger.debug("Using %s service-provider", settings.service_provider)
    sync = ProviderRegistry.create(SYNC, settings.sync_provider, settings)
    logger.debug("Using %s sync-provider", settings.sync_provider)
    evaluator = ProviderRegistry.create(EVALUATOR, settings.evaluator, settings)
    logger.debug("Using %s evaluator", settings.evaluator)

    return ProviderSet(
        sync=cast("SyncSource", sync),
        evaluator=cast("Evaluator", evaluator),
        service=cast("Service", service),
    )
