"""Flag evaluators."""

from flagsync.core.eval.base import (
    EvaluationContext,
    Evaluator,
    Reason,
    ResolutionDetails,
)
from flagsync.core.eval.json_evaluator import (
    FlagDefinition,
    FlagDocument,
    FlagSnapshot,
    FlagState,
    JsonEvaluator,
)

__all__ = [
    "EvaluationContext",
    "Evaluator",
    "Reason",
    "ResolutionDetails",
    "FlagDefinition",
    "FlagDocument",
    "FlagSnapshot",
    "FlagState",
    "JsonEvaluator",
]
