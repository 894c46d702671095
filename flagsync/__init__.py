"""flagsync - feature flag sync and evaluation daemon."""

__version__ = "0.1.0"
