"""Evaluation transport services."""

from flagsync.core.service.base import Service
from flagsync.core.service.http import HttpService, ResolveKind, create_app

__all__ = ["Service", "HttpService", "ResolveKind", "create_app"]
