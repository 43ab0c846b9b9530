from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REMOTE_WRITE_TOTAL = Counter(
    "pharmasync_remote_write_total",
    "Writes attempted against the remote store",
    ["table", "op_type", "status"],
)

REMOTE_WRITE_LATENCY_SECONDS = Histogram(
    "pharmasync_remote_write_latency_seconds",
    "Latency of remote store writes",
    ["table", "op_type"],
)

QUEUE_ENQUEUED_TOTAL = Counter(
    "pharmasync_queue_enqueued_total",
    "Writes accepted into the offline queue",
    ["table", "op_type"],
)

QUEUE_REPLAY_TOTAL = Counter(
    "pharmasync_queue_replay_total",
    "Replay attempts of queued writes",
    ["table", "op_type", "status"],
)

QUEUE_PENDING_OPERATIONS = Gauge(
    "pharmasync_queue_pending_operations",
    "Writes currently waiting in the offline queue",
)
