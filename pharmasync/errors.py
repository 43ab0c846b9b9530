
class PharmasyncError(Exception):
    """Base exception for pharmasync errors."""


class RemoteOperationFailed(PharmasyncError):
    """The remote store rejected or could not apply a write."""

    def __init__(self, message: str, *, table: str | None = None, kind: str | None = None) -> None:
        super().__init__(message)
        self.table = table
        self.kind = kind


class PersistenceError(PharmasyncError):
    """Local queue storage could not be read, decoded or written."""
