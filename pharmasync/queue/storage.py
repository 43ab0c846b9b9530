from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, Sequence

from redis import Redis
from redis.exceptions import RedisError

from ..errors import PersistenceError
from .models import QueuedOperation

logger = logging.getLogger(__name__)


def encode_operations(operations: Sequence[QueuedOperation]) -> str:
    try:
        return json.dumps([op.to_dict() for op in operations])
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"Queued operations are not JSON serializable: {exc}") from exc


def decode_operations(raw: str | bytes | None) -> list[QueuedOperation]:
    """
    Decode a persisted snapshot.

    ``None`` (nothing stored yet) decodes to an empty queue. Anything that
    is not a JSON array of valid records raises PersistenceError.
    """
    if raw is None:
        return []
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PersistenceError(f"Corrupted queue snapshot: not valid UTF-8 ({exc})") from exc

    try:
        items: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Corrupted queue snapshot: {exc}") from exc

    if not isinstance(items, list):
        raise PersistenceError(
            f"Invalid queue snapshot: expected a JSON array, got {type(items).__name__}"
        )

    operations = [QueuedOperation.from_dict(item) for item in items]
    ids = [op.id for op in operations]
    if len(set(ids)) != len(ids):
        raise PersistenceError("Invalid queue snapshot: duplicate operation ids")
    return operations


class QueueStorage(Protocol):
    """
    Durable local home of the offline queue.

    Implementations store the whole queue under one key and replace it with
    a single write on every save, so a reader never sees a partial queue.
    """

    def load(self) -> list[QueuedOperation]:
        """Return the persisted queue in enqueue order."""
        ...

    def save(self, operations: Sequence[QueuedOperation]) -> None:
        """Replace the persisted queue with ``operations``."""
        ...


class MemoryQueueStorage:
    """
    Process-local storage holding the serialized snapshot.

    Snapshots still round-trip through JSON so that anything saved here
    would also survive a real storage backend.
    """

    def __init__(self, initial: str | None = None) -> None:
        self._snapshot = initial

    @property
    def snapshot(self) -> str | None:
        return self._snapshot

    def load(self) -> list[QueuedOperation]:
        return decode_operations(self._snapshot)

    def save(self, operations: Sequence[QueuedOperation]) -> None:
        self._snapshot = encode_operations(operations)


class FileQueueStorage:
    """
    JSON file storage.

    A save writes a temporary file in the target directory and renames it
    over the target, so the file always holds a complete snapshot.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> list[QueuedOperation]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise PersistenceError(f"Failed to read queue file {self.path}: {exc}") from exc
        return decode_operations(raw)

    def save(self, operations: Sequence[QueuedOperation]) -> None:
        content = encode_operations(operations)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Failed to write queue file {self.path}: {exc}") from exc
        logger.debug("Persisted %d queued operations to %s", len(operations), self.path)


class RedisQueueStorage:
    """
    Redis storage: one string key holding the JSON array.

    load() is a single GET and save() a single SET. Redis failures are
    wrapped in PersistenceError.
    """

    def __init__(self, redis: Redis, key: str = "pending_operations") -> None:
        if not key:
            raise ValueError("key cannot be empty")
        self.redis = redis
        self.key = key

    def load(self) -> list[QueuedOperation]:
        try:
            raw = self.redis.get(self.key)
        except RedisError as exc:
            raise PersistenceError(f"Failed to read queue key {self.key!r}: {exc}") from exc
        return decode_operations(raw)

    def save(self, operations: Sequence[QueuedOperation]) -> None:
        content = encode_operations(operations)
        try:
            self.redis.set(self.key, content)
        except RedisError as exc:
            raise PersistenceError(f"Failed to write queue key {self.key!r}: {exc}") from exc
        logger.debug("Persisted %d queued operations to redis key %s", len(operations), self.key)
