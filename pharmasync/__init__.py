from .connectivity import ConnectivityMonitor, ConnectivityState
from .queue import OfflineQueue, OperationKind, WriteStatus
from .remote import SqlRemoteStore

__all__ = [
    "ConnectivityMonitor",
    "ConnectivityState",
    "OfflineQueue",
    "OperationKind",
    "WriteStatus",
    "SqlRemoteStore",
]
