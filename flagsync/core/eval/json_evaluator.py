"""JSON flag evaluator.

Document shape::

    {
      "flags": {
        "new-welcome-banner": {
          "state": "ENABLED",
          "variants": {"on": true, "off": false},
          "defaultVariant": "off"
        }
      }
    }

Flags resolve to their default variant; targeting rules are not evaluated
and the evaluation context is accepted but unused. The live flag set is an
immutable snapshot replaced by a single reference assignment, so a reader
sees either the old or the new document in full.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from flagsync.core.errors import FlagDisabled, FlagNotFound, ParseError, TypeMismatch
from flagsync.core.eval.base import (
    EvaluationContext,
    Evaluator,
    Reason,
    ResolutionDetails,
)
from flagsync.core.providers.registry import EVALUATOR, ProviderRegistry
from flagsync.utils.metrics import evaluator_flags_loaded, evaluator_loads_total

if TYPE_CHECKING:
    from flagsync.core.config import Settings

logger = logging.getLogger(__name__)


class FlagState(str, Enum):
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"


class FlagDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    state: FlagState
    variants: Dict[str, Any]
    default_variant: str = Field(alias="defaultVariant")

    @model_validator(mode="after")
    def _check_default_variant(self) -> "FlagDefinition":
        if not self.variants:
            raise ValueError("variants must not be empty")
        if self.default_variant not in self.variants:
            raise ValueError(
                f"defaultVariant '{self.default_variant}' is not one of the variants"
            )
        return self


class FlagDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    flags: Dict[str, FlagDefinition]


@dataclass(frozen=True)
class FlagSnapshot:
    flags: Mapping[str, FlagDefinition] = field(default_factory=lambda: MappingProxyType({}))
    revision: int = 0
    loaded_at: Optional[float] = None


def _is_boolean(value: Any) -> bool:
    return isinstance(value, bool)


def _is_string(value: Any) -> bool:
    return isinstance(value, str)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_object(value: Any) -> bool:
    return isinstance(value, dict)


@ProviderRegistry.register(EVALUATOR, "json")
class JsonEvaluator(Evaluator):
    def __init__(self) -> None:
        super().__init__()
        self._snapshot = FlagSnapshot()
        self._write_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "JsonEvaluator":
        return cls()

    @property
    def revision(self) -> int:
        return self._snapshot.revision

    def load(self, payload: Union[bytes, str]) -> None:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        if not payload.strip():
            evaluator_loads_total.labels(evaluator=self.name, status="error").inc()
            self.mark_degraded("flag payload is empty")
            raise ParseError("flag payload is empty", provider=self.name)

        try:
            document = FlagDocument.model_validate_json(payload)
        except ValidationError as exc:
            evaluator_loads_total.labels(evaluator=self.name, status="error").inc()
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
            message = (
                f"invalid flag payload ({exc.error_count()} error(s)); "
                f"{location}: {first.get('msg')}"
            )
            self.mark_degraded(message)
            raise ParseError(message, provider=self.name) from exc

        with self._write_lock:
            self._snapshot = FlagSnapshot(
                flags=MappingProxyType(dict(document.flags)),
                revision=self._snapshot.revision + 1,
                loaded_at=time.time(),
            )
            snapshot = self._snapshot

        self.mark_healthy()
        evaluator_loads_total.labels(evaluator=self.name, status="ok").inc()
        evaluator_flags_loaded.labels(evaluator=self.name).set(len(snapshot.flags))
        logger.info(
            "Loaded %d flag(s), revision %d", len(snapshot.flags), snapshot.revision
        )

    def flag_keys(self) -> List[str]:
        return sorted(self._snapshot.flags)

    def resolve_all(
        self, context: Optional[EvaluationContext] = None
    ) -> Dict[str, ResolutionDetails]:
        flags = self._snapshot.flags
        return {
            key: ResolutionDetails(
                value=flag.variants[flag.default_variant],
                variant=flag.default_variant,
                reason=Reason.STATIC,
            )
            for key, flag in flags.items()
            if flag.state is FlagState.ENABLED
        }

    def _resolve(
        self,
        flag_key: str,
        type_name: str,
        type_check: Callable[[Any], bool],
    ) -> ResolutionDetails:
        flag = self._snapshot.flags.get(flag_key)
        if flag is None:
            raise FlagNotFound(f"flag '{flag_key}' was not found", flag_key=flag_key)
        if flag.state is FlagState.DISABLED:
            raise FlagDisabled(f"flag '{flag_key}' is disabled", flag_key=flag_key)

        value = flag.variants[flag.default_variant]
        if not type_check(value):
            raise TypeMismatch(
                f"flag '{flag_key}' is not a {type_name} flag", flag_key=flag_key
            )
        return ResolutionDetails(value=value, variant=flag.default_variant)

    def resolve_boolean(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails:
        return self._resolve(flag_key, "boolean", _is_boolean)

    def resolve_string(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails:
        return self._resolve(flag_key, "string", _is_string)

    def resolve_number(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails:
        return self._resolve(flag_key, "number", _is_number)

    def resolve_object(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails:
        return self._resolve(flag_key, "object", _is_object)
