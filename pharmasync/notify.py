from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


class Notifier(Protocol):
    """User-facing toast channel. Must not block the caller."""

    def notify(self, level: NoticeLevel, message: str) -> None:
        ...


_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.SUCCESS: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Default notifier: writes notices to the ``pharmasync.notices`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("pharmasync.notices")

    def notify(self, level: NoticeLevel, message: str) -> None:
        self.logger.log(_LOG_LEVELS[level], "[%s] %s", level.value, message)


class RecordingNotifier:
    """Keeps every notice in memory, in emission order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.notices: list[Notice] = []

    def notify(self, level: NoticeLevel, message: str) -> None:
        with self._lock:
            self.notices.append(Notice(level, message))

    def messages(self, level: NoticeLevel | None = None) -> list[str]:
        with self._lock:
            return [n.message for n in self.notices if level is None or n.level == level]

    def clear(self) -> None:
        with self._lock:
            self.notices.clear()
