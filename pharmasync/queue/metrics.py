from __future__ import annotations

from ..metrics.registry import (
    QUEUE_ENQUEUED_TOTAL,
    QUEUE_PENDING_OPERATIONS,
    QUEUE_REPLAY_TOTAL,
)


def observe_enqueue(table: str, op_type: str) -> None:
    QUEUE_ENQUEUED_TOTAL.labels(table=table, op_type=op_type).inc()


def observe_replay(table: str, op_type: str, status: str) -> None:
    QUEUE_REPLAY_TOTAL.labels(table=table, op_type=op_type, status=status).inc()


def set_pending(count: int) -> None:
    QUEUE_PENDING_OPERATIONS.set(count)
