from .registry import (
    QUEUE_ENQUEUED_TOTAL,
    QUEUE_PENDING_OPERATIONS,
    QUEUE_REPLAY_TOTAL,
    REMOTE_WRITE_LATENCY_SECONDS,
    REMOTE_WRITE_TOTAL,
)

__all__ = [
    "QUEUE_ENQUEUED_TOTAL",
    "QUEUE_PENDING_OPERATIONS",
    "QUEUE_REPLAY_TOTAL",
    "REMOTE_WRITE_LATENCY_SECONDS",
    "REMOTE_WRITE_TOTAL",
]
