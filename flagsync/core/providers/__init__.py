"""Provider Framework.

Sync sources, evaluators and services register themselves by kind and name:

    @ProviderRegistry.register("sync", "filepath")
    class FilePathSync(SyncSource):
        ...

``build_providers(settings)`` resolves the configured names once at startup.
"""

from flagsync.core.providers.base import BaseProvider, ProviderStatus
from flagsync.core.providers.bootstrap import (
    ProviderSet,
    bootstrap_builtin_providers,
    build_providers,
)
from flagsync.core.providers.registry import (
    EVALUATOR,
    SERVICE,
    SYNC,
    ProviderRegistry,
)

__all__ = [
    "BaseProvider",
    "ProviderStatus",
    "ProviderRegistry",
    "ProviderSet",
    "bootstrap_builtin_providers",
    "build_providers",
    "SYNC",
    "EVALUATOR",
    "SERVICE",
]
