from flagsync.core.runtime.orchestrator import Runtime, RuntimeState
from flagsync.core.runtime.signals import install_signal_handlers, remove_signal_handlers

__all__ = [
    "Runtime",
    "RuntimeState",
    "install_signal_handlers",
    "remove_signal_handlers",
]
