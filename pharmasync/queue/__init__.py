from __future__ import annotations

from ..config import QueueConfig
from .models import OperationKind, QueuedOperation, SyncReport, WriteResult, WriteStatus
from .offline_queue import OfflineQueue
from .storage import FileQueueStorage, MemoryQueueStorage, QueueStorage, RedisQueueStorage

__all__ = [
    "QueueConfig",
    "OperationKind",
    "QueuedOperation",
    "SyncReport",
    "WriteResult",
    "WriteStatus",
    "OfflineQueue",
    "QueueStorage",
    "FileQueueStorage",
    "MemoryQueueStorage",
    "RedisQueueStorage",
]
