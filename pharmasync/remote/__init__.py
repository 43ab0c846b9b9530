from .session import DbSession
from .store import RemoteStore, SqlRemoteStore

__all__ = [
    "DbSession",
    "RemoteStore",
    "SqlRemoteStore",
]
