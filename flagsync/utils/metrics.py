"""Prometheus metrics for sync, evaluation and runtime lifecycle.

All metric objects are defined at import time on the default registry; the
http service exposes them at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

sync_events_total = Counter(
    "flagsync_sync_events_total",
    "Notification events emitted by sync sources",
    ["source", "event"],
)
sync_fetch_errors_total = Counter(
    "flagsync_sync_fetch_errors_total",
    "Failed payload fetches",
    ["source"],
)
evaluator_loads_total = Counter(
    "flagsync_evaluator_loads_total",
    "Evaluator load attempts",
    ["evaluator", "status"],
)
evaluator_flags_loaded = Gauge(
    "flagsync_evaluator_flags_loaded",
    "Number of flags in the live flag set",
    ["evaluator"],
)
evaluation_requests_total = Counter(
    "flagsync_evaluation_requests_total",
    "Flag resolution requests served",
    ["kind", "outcome"],
)
runtime_state = Gauge(
    "flagsync_runtime_state",
    "Current runtime state (1 for the active state, 0 otherwise)",
    ["state"],
)
