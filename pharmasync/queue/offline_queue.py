from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from ..config import QueueConfig
from ..connectivity import ConnectivityMonitor, ConnectivityState
from ..errors import PersistenceError
from ..notify import LoggingNotifier, NoticeLevel, Notifier
from ..remote.store import RemoteStore
from .metrics import observe_enqueue, observe_replay, set_pending
from .models import (
    OperationKind,
    QueuedOperation,
    SyncReport,
    WriteResult,
    WriteStatus,
    match_key,
    new_operation_id,
    now_ms,
)
from .storage import QueueStorage

logger = logging.getLogger(__name__)


def _plural(count: int, word: str = "operation") -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class OfflineQueue:
    """
    Single write path for the POS: writes go straight to the remote store
    while online and into a durable FIFO queue while offline.

    One instance is built at startup and handed to every caller that writes.
    It owns the queue: an in-memory list mirrored to ``storage`` as a full
    snapshot after every mutation.

    Design Principles:
    - Queue only when Offline at call time; online failures are surfaced
    - Replay strictly sequential, in enqueue order
    - A failed replay never blocks later operations
    - Remove only what the remote store confirmed
    - No backoff, no retry limit, no dead-letter queue

    Usage:
        queue = OfflineQueue(remote, storage, connectivity)
        result = queue.execute_operation("insert", "medicines", {"name": "Paracetamol"})
        if result.is_pending:
            ...  # accepted locally, will sync later
        queue.sync_now()
    """

    def __init__(
        self,
        remote: RemoteStore,
        storage: QueueStorage,
        connectivity: ConnectivityMonitor,
        notifier: Optional[Notifier] = None,
        config: Optional[QueueConfig] = None,
    ) -> None:
        """
        Rehydrate the queue from ``storage`` and subscribe to connectivity.

        Raises:
            PersistenceError: If the persisted queue cannot be read. An error
                notice is emitted first; a corrupt queue is never replaced
                with an empty one.
        """
        self.remote = remote
        self.storage = storage
        self.connectivity = connectivity
        self.notifier = notifier or LoggingNotifier()
        self.config = config or QueueConfig()

        self._lock = threading.Lock()
        self._sync_guard = threading.Lock()
        self._syncing = False

        try:
            self._operations: list[QueuedOperation] = list(storage.load())
        except PersistenceError as exc:
            self.notifier.notify(NoticeLevel.ERROR, f"Could not load offline changes: {exc}")
            raise
        set_pending(len(self._operations))
        if self._operations:
            logger.info("Rehydrated %d pending operations", len(self._operations))

        self._unsubscribe = connectivity.subscribe(self._on_connectivity_change)

    @property
    def is_online(self) -> bool:
        return self.connectivity.is_online

    @property
    def syncing(self) -> bool:
        return self._syncing

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._operations)

    @property
    def pending_operations(self) -> tuple[QueuedOperation, ...]:
        with self._lock:
            return tuple(self._operations)

    def execute_operation(
        self,
        kind: OperationKind | str,
        table: str,
        data: Mapping[str, Any],
    ) -> WriteResult:
        """
        Perform a write, or queue it when offline.

        Online: the remote call is made directly. Its rows come back in a
        CONFIRMED result and RemoteOperationFailed propagates unchanged;
        nothing is queued.

        Offline: the write is appended to the queue and the queue persisted
        before returning a QUEUED_LOCALLY result echoing ``data``.

        Raises:
            ValueError: Unknown kind, empty table, or update/delete without
                the id column in ``data``
            RemoteOperationFailed: Online and the remote store rejected it
            PersistenceError: Offline and the queue could not be persisted
        """
        kind = self._validate(kind, table, data)

        if self.connectivity.is_online:
            rows = self._apply(kind, table, data)
            return WriteResult(status=WriteStatus.CONFIRMED, data=rows)

        operation = self._enqueue(kind, table, data)
        self.notifier.notify(NoticeLevel.INFO, "Saved offline. Will sync when online.")
        return WriteResult(
            status=WriteStatus.QUEUED_LOCALLY,
            data=[dict(operation.data)],
            operation=operation,
        )

    def sync_pending_operations(self) -> SyncReport:
        """
        Replay queued operations against the remote store.

        Not reentrant: returns a skipped report if the queue is empty or a
        replay is already running. Operations are replayed one at a time
        in enqueue order from a snapshot taken at the start. Successes are
        filtered out of the live queue afterwards, so writes enqueued during
        the replay are kept. Failures are logged and stay queued.

        Raises:
            PersistenceError: If the trimmed queue could not be persisted.
                The in-memory queue is already trimmed at that point, so the
                stored snapshot may replay confirmed operations after a
                restart.
        """
        if not self._sync_guard.acquire(blocking=False):
            logger.debug("Replay already in progress; skipping")
            return SyncReport(remaining=self.pending_count, skipped=True)

        try:
            with self._lock:
                snapshot = list(self._operations)
            if not snapshot:
                return SyncReport(skipped=True)

            self._syncing = True
            self.notifier.notify(
                NoticeLevel.INFO, f"Syncing {_plural(len(snapshot), 'pending operation')}..."
            )

            succeeded: set[str] = set()
            for op in snapshot:
                try:
                    self._apply(op.kind, op.table, op.data)
                except Exception as exc:
                    observe_replay(op.table, op.kind.value, "error")
                    logger.error(
                        "Sync error for operation %s (%s on %s): %s",
                        op.id,
                        op.kind.value,
                        op.table,
                        exc,
                    )
                    continue
                observe_replay(op.table, op.kind.value, "success")
                succeeded.add(op.id)

            failed = len(snapshot) - len(succeeded)
            remaining = self._remove(succeeded)
        finally:
            self._syncing = False
            self._sync_guard.release()

        if succeeded:
            self.notifier.notify(
                NoticeLevel.SUCCESS, f"Synced {_plural(len(succeeded))} successfully."
            )
        if failed:
            self.notifier.notify(
                NoticeLevel.WARNING, f"Failed to sync {_plural(failed)}. Will retry later."
            )
        logger.info("Replay finished: %d synced, %d failed, %d remaining", len(succeeded), failed, remaining)
        return SyncReport(synced=len(succeeded), failed=failed, remaining=remaining)

    sync_now = sync_pending_operations

    def close(self) -> None:
        """Stop reacting to connectivity changes."""
        self._unsubscribe()

    def _validate(self, kind: OperationKind | str, table: str, data: Mapping[str, Any]) -> OperationKind:
        try:
            kind = OperationKind(kind)
        except ValueError:
            raise ValueError(f"Unsupported operation type: {kind!r}") from None
        if not isinstance(table, str) or not table:
            raise ValueError("table must be a non-empty string")
        if not isinstance(data, Mapping):
            raise ValueError(f"data must be a mapping, got {type(data).__name__}")
        if kind != OperationKind.INSERT and match_key(data, self.config.id_column) is None:
            raise ValueError(f"{kind.value} requires {self.config.id_column!r} in data")
        return kind

    def _apply(self, kind: OperationKind, table: str, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        if kind == OperationKind.INSERT:
            return self.remote.insert(table, data)
        match_id = match_key(data, self.config.id_column)
        if kind == OperationKind.UPDATE:
            return self.remote.update(table, data, match_id)
        return self.remote.delete(table, match_id)

    def _enqueue(self, kind: OperationKind, table: str, data: Mapping[str, Any]) -> QueuedOperation:
        with self._lock:
            timestamp = now_ms()
            operation = QueuedOperation(
                id=new_operation_id({op.id for op in self._operations}, now=timestamp),
                kind=kind,
                table=table,
                data=dict(data),
                timestamp=timestamp,
            )
            updated = self._operations + [operation]
            try:
                self.storage.save(updated)
            except PersistenceError as exc:
                self.notifier.notify(NoticeLevel.ERROR, f"Could not save change offline: {exc}")
                raise
            self._operations = updated
            set_pending(len(updated))

        observe_enqueue(table, kind.value)
        logger.info("Queued %s on %s as %s", kind.value, table, operation.id)
        return operation

    def _remove(self, succeeded: set[str]) -> int:
        with self._lock:
            if not succeeded:
                return len(self._operations)
            remaining = [op for op in self._operations if op.id not in succeeded]
            self._operations = remaining
            set_pending(len(remaining))
            try:
                self.storage.save(remaining)
            except PersistenceError as exc:
                self.notifier.notify(NoticeLevel.ERROR, f"Could not save sync progress: {exc}")
                raise
            return len(remaining)

    def _on_connectivity_change(self, state: ConnectivityState) -> None:
        if state == ConnectivityState.OFFLINE:
            self.notifier.notify(NoticeLevel.WARNING, "You are offline. Changes will sync when online.")
            return
        self.notifier.notify(NoticeLevel.SUCCESS, "Back online! Syncing data...")
        self.sync_pending_operations()
