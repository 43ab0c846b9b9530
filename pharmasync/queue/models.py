from __future__ import annotations

import secrets
import time
from collections.abc import Container
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ..errors import PersistenceError


class OperationKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class WriteStatus(str, Enum):
    CONFIRMED = "confirmed"
    QUEUED_LOCALLY = "queued_locally"


_RECORD_FIELDS = frozenset({"id", "type", "table", "data", "timestamp"})


def now_ms() -> int:
    return int(time.time() * 1000)


def new_operation_id(taken: Container[str] = (), now: Optional[int] = None) -> str:
    """
    Generate an operation id of the form ``<epoch-ms>-<random hex>``.

    ``now`` pins the millisecond prefix, so a caller can stamp the record
    timestamp with the same instant. Regenerates until the id is not in
    ``taken``.
    """
    while True:
        op_id = f"{now_ms() if now is None else now}-{secrets.token_hex(5)}"
        if op_id not in taken:
            return op_id


def match_key(data: Mapping[str, Any], id_column: str) -> Any:
    """Identifying key of a row payload, or None when it has none."""
    return data.get(id_column)


@dataclass(frozen=True)
class QueuedOperation:
    """
    A write buffered while offline, waiting to be replayed.

    Never mutated after creation: replay either removes it from the
    queue or leaves it as is.
    """
    id: str
    kind: OperationKind
    table: str
    data: Mapping[str, Any]
    timestamp: int

    def match_id(self, id_column: str) -> Any:
        """Identifying key used by UPDATE and DELETE replays."""
        return match_key(self.data, id_column)

    def to_dict(self) -> dict[str, Any]:
        """Persisted JSON shape."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "table": self.table,
            "data": dict(self.data),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "QueuedOperation":
        """
        Parse a persisted record.

        Strict: a record with missing or extra fields, an unknown type or
        non-object data raises PersistenceError.
        """
        if not isinstance(raw, dict) or set(raw.keys()) != _RECORD_FIELDS:
            raise PersistenceError(f"Invalid queued operation record: {raw!r}")

        try:
            kind = OperationKind(raw["type"])
        except ValueError as exc:
            raise PersistenceError(f"Unknown operation type: {raw['type']!r}") from exc

        if not isinstance(raw["id"], str) or not raw["id"]:
            raise PersistenceError(f"Invalid operation id: {raw['id']!r}")
        if not isinstance(raw["table"], str) or not raw["table"]:
            raise PersistenceError(f"Invalid operation table: {raw['table']!r}")
        if not isinstance(raw["data"], dict):
            raise PersistenceError(f"Invalid operation data for {raw['id']}: expected an object")
        if not isinstance(raw["timestamp"], int) or isinstance(raw["timestamp"], bool):
            raise PersistenceError(f"Invalid operation timestamp: {raw['timestamp']!r}")

        return cls(
            id=raw["id"],
            kind=kind,
            table=raw["table"],
            data=raw["data"],
            timestamp=raw["timestamp"],
        )


@dataclass(frozen=True)
class WriteResult:
    """
    Outcome of OfflineQueue.execute_operation().

    CONFIRMED writes were applied by the remote store and ``data`` holds the
    rows it returned. QUEUED_LOCALLY writes were only persisted locally;
    ``data`` echoes the payload and ``operation`` is the queued entry.
    """
    status: WriteStatus
    data: list[dict[str, Any]] = field(default_factory=list)
    operation: Optional[QueuedOperation] = None

    @property
    def is_pending(self) -> bool:
        return self.status == WriteStatus.QUEUED_LOCALLY


@dataclass(frozen=True)
class SyncReport:
    synced: int = 0
    failed: int = 0
    remaining: int = 0
    # True when the call did nothing: empty queue or a replay already running
    skipped: bool = False
