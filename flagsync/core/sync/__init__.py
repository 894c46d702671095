"""Flag payload sync sources.

- FilePathSync: local file, short polling interval
- HttpSync: remote HTTP endpoint, fixed polling schedule
"""

from flagsync.core.sync.base import SyncSource, fingerprint
from flagsync.core.sync.events import EventType, NotificationEvent
from flagsync.core.sync.filepath import FilePathSync
from flagsync.core.sync.remote import HttpSync

__all__ = [
    "EventType",
    "NotificationEvent",
    "SyncSource",
    "fingerprint",
    "FilePathSync",
    "HttpSync",
]
