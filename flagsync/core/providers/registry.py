"""Provider registry for discovery and instance creation."""

from __future__ import annotations

from threading import RLock
from typing import TYPE_CHECKING, Dict, List, Type

from flagsync.core.errors import ProviderNotFound
from flagsync.core.providers.base import BaseProvider

if TYPE_CHECKING:
    from flagsync.core.config import Settings

SYNC = "sync"
EVALUATOR = "evaluator"
SERVICE = "service"

# Message fragment used when a selection does not resolve
_SELECTION_LABELS = {
    SYNC: "sync-provider",
    EVALUATOR: "evaluator",
    SERVICE: "service-provider",
}


class ProviderRegistry:
    """Registry of provider classes keyed by (kind, name)."""

    _providers: Dict[str, Dict[str, Type[BaseProvider]]] = {}
    _lock = RLock()

    @staticmethod
    def _normalize_token(value: str, field_name: str) -> str:
        if not isinstance(value, str):
            raise TypeError(f"{field_name} must be a string")
        token = value.strip()
        if not token:
            raise ValueError(f"{field_name} must be a non-empty string")
        if "/" in token or ":" in token:
            raise ValueError(f"{field_name} cannot contain '/' or ':'")
        return token

    @staticmethod
    def _validate_provider_class(provider_cls: Type[BaseProvider]) -> None:
        if not isinstance(provider_cls, type) or not issubclass(provider_cls, BaseProvider):
            raise TypeError(
                "Registered provider class must inherit BaseProvider: "
                f"{provider_cls!r}"
            )

    @classmethod
    def register(cls, kind: str, provider_name: str):
        """Decorator to register a provider class.

        Example:
            @ProviderRegistry.register("sync", "filepath")
            class FilePathSync(SyncSource):
                ...
        """
        kind = cls._normalize_token(kind, "kind")
        provider_name = cls._normalize_token(provider_name, "provider_name")

        def _decorator(provider_cls: Type[BaseProvider]) -> Type[BaseProvider]:
            cls._validate_provider_class(provider_cls)
            with cls._lock:
                kind_map = cls._providers.setdefault(kind, {})
                existing = kind_map.get(provider_name)
                if existing is not None and existing is not provider_cls:
                    raise ValueError(f"Provider already registered: {kind}/{provider_name}")
                kind_map[provider_name] = provider_cls
            provider_cls.provider_type = kind
            provider_cls.provider_name = provider_name
            return provider_cls

        return _decorator

    @classmethod
    def get_provider_class(cls, kind: str, provider_name: str) -> Type[BaseProvider]:
        label = _SELECTION_LABELS.get(kind, kind)
        with cls._lock:
            provider_cls = cls._providers.get(kind, {}).get(
                provider_name.strip() if isinstance(provider_name, str) else ""
            )
        if provider_cls is None:
            raise ProviderNotFound(
                f"no {label} set: unknown {label} '{provider_name}'",
                provider=provider_name,
            )
        return provider_cls

    @classmethod
    def create(cls, kind: str, provider_name: str, settings: "Settings") -> BaseProvider:
        """Instantiate the provider registered under kind/provider_name."""
        provider_cls = cls.get_provider_class(kind, provider_name)
        return provider_cls.from_settings(settings)

    @classmethod
    def list_kinds(cls) -> List[str]:
        with cls._lock:
            return sorted(cls._providers.keys())

    @classmethod
    def list_providers(cls, kind: str) -> List[str]:
        with cls._lock:
            return sorted(cls._providers.get(kind, {}).keys())

    @classmethod
    def exists(cls, kind: str, provider_name: str) -> bool:
        with cls._lock:
            return provider_name in cls._providers.get(kind, {})

    @classmethod
    def unregister(cls, kind: str, provider_name: str) -> bool:
        with cls._lock:
            kind_map = cls._providers.get(kind)
            if not kind_map or provider_name not in kind_map:
                return False
            del kind_map[provider_name]
            if not kind_map:
                del cls._providers[kind]
            return True
