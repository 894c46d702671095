"""Shared error codes and exception types.

Startup errors (provider lookup, configuration, initial fetch) abort the
process. Steady-state fetch and parse errors are logged by the runtime and
absorbed. Evaluation errors are mapped to transport responses by the service.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    SOURCE_UNREACHABLE = "SOURCE_UNREACHABLE"
    PARSE_ERROR = "PARSE_ERROR"
    SERVICE_FAILURE = "SERVICE_FAILURE"
    # Evaluation errors surfaced to clients
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    FLAG_DISABLED = "FLAG_DISABLED"
    TYPE_MISMATCH = "TYPE_MISMATCH"


class FlagSyncError(Exception):
    """Base class for all flagsync errors."""

    code: ErrorCode = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, *, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> dict:
        data = {"errorCode": self.code.value, "message": self.message}
        if self.provider:
            data["provider"] = self.provider
        return data


class ProviderNotFound(FlagSyncError):
    code = ErrorCode.PROVIDER_NOT_FOUND


class ConfigurationError(FlagSyncError):
    code = ErrorCode.CONFIGURATION_ERROR


class SourceUnreachable(FlagSyncError):
    code = ErrorCode.SOURCE_UNREACHABLE


class ParseError(FlagSyncError):
    code = ErrorCode.PARSE_ERROR


class ServiceFailure(FlagSyncError):
    code = ErrorCode.SERVICE_FAILURE


class EvaluationError(FlagSyncError):
    """Raised by evaluators when a single query cannot be answered."""

    def __init__(self, message: str, *, flag_key: str):
        super().__init__(message)
        self.flag_key = flag_key


class FlagNotFound(EvaluationError):
    code = ErrorCode.FLAG_NOT_FOUND


class FlagDisabled(EvaluationError):
    code = ErrorCode.FLAG_DISABLED


class TypeMismatch(EvaluationError):
    code = ErrorCode.TYPE_MISMATCH


__all__ = [
    "ErrorCode",
    "FlagSyncError",
    "ProviderNotFound",
    "ConfigurationError",
    "SourceUnreachable",
    "ParseError",
    "ServiceFailure",
    "EvaluationError",
    "FlagNotFound",
    "FlagDisabled",
    "TypeMismatch",
]
