from __future__ import annotations

from ..metrics.registry import REMOTE_WRITE_LATENCY_SECONDS, REMOTE_WRITE_TOTAL


def observe_remote_write(table: str, op_type: str, status: str, latency_s: float) -> None:
    REMOTE_WRITE_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    REMOTE_WRITE_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)
