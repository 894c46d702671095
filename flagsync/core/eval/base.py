"""Evaluator abstraction.

An evaluator owns the live flag set. ``load`` replaces it atomically from a
freshly fetched payload; queries read one consistent snapshot.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from flagsync.core.providers.base import BaseProvider

EvaluationContext = Mapping[str, Any]


class Reason(str, Enum):
    STATIC = "STATIC"


@dataclass(frozen=True)
class ResolutionDetails:
    value: Any
    variant: str
    reason: Reason = Reason.STATIC

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "variant": self.variant, "reason": self.reason.value}


class Evaluator(BaseProvider):
    """Base class for flag evaluators."""

    @property
    @abstractmethod
    def revision(self) -> int:
        """Number of successful loads so far (0 before the first)."""

    @abstractmethod
    def load(self, payload: Union[bytes, str]) -> None:
        """Parse payload and swap it in as the live flag set.

        Raises:
            ParseError: payload is empty or malformed; the previous flag set
                stays active.
        """

    @abstractmethod
    def flag_keys(self) -> List[str]:
        """Keys of the live flag set."""

    @abstractmethod
    def resolve_all(
        self, context: Optional[EvaluationContext] = None
    ) -> Dict[str, ResolutionDetails]:
        """Resolve every enabled flag against a single snapshot."""

    @abstractmethod
    def resolve_boolean(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails: ...

    @abstractmethod
    def resolve_string(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails: ...

    @abstractmethod
    def resolve_number(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails: ...

    @abstractmethod
    def resolve_object(
        self, flag_key: str, context: Optional[EvaluationContext] = None
    ) -> ResolutionDetails: ...
