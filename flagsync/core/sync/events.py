"""Notification events exchanged between a sync source and the runtime.

An event says that the source changed and how (created, modified, deleted).
It never carries the payload: consumers re-fetch on every event.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class EventType(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass(frozen=True)
class NotificationEvent:
    type: EventType
    source: str = ""
    detected_at: float = field(default_factory=time.time)
