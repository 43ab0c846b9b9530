from __future__ import annotations

import os
import re
import threading
import uuid
from collections.abc import Callable, Iterator
from typing import Any, Mapping

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from pharmasync.connectivity import ConnectivityMonitor, ConnectivityState
from pharmasync.errors import RemoteOperationFailed
from pharmasync.notify import RecordingNotifier
from pharmasync.queue import MemoryQueueStorage


@pytest.fixture
def db_url(tmp_path) -> str:
    """
    Database URL for remote store tests.

    Set PHARMASYNC_TEST_DB_URL to run against a real server; by default each
    test gets its own SQLite file.
    """
    return os.environ.get("PHARMASYNC_TEST_DB_URL", f"sqlite:///{tmp_path / 'remote.db'}")


@pytest.fixture
def engine(db_url: str) -> Iterator[Engine]:
    """
    SQLAlchemy engine for tests.

    We fail fast if the database is unreachable, so failures are actionable.
    """
    eng = create_engine(db_url, pool_pre_ping=True)
    try:
        with eng.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except Exception as exc:  # pragma: no cover
        pytest.fail(
            "Test database is not reachable.\n"
            f"- PHARMASYNC_TEST_DB_URL={db_url!r}\n"
            f"- Underlying error: {exc}",
            pytrace=False,
        )

    yield eng
    eng.dispose()


def _sanitize_table_name(name: str) -> str:
    name = re.sub(r"[^a-zA-Z0-9_]+", "_", name).strip("_").lower()
    if not name:
        name = "t"
    return name[:40]


@pytest.fixture
def table_factory(engine: Engine, request: pytest.FixtureRequest) -> Iterator[Callable[[str], str]]:
    """
    Factory fixture creating per-test tables.

    Usage:
        table = table_factory("id VARCHAR(64) PRIMARY KEY, name VARCHAR(255)")
    """
    created: list[str] = []

    def _create(schema_sql: str) -> str:
        base = _sanitize_table_name(f"t_{request.node.name}")
        table = f"{base}_{uuid.uuid4().hex[:10]}"

        with engine.begin() as conn:
            conn.exec_driver_sql(f"DROP TABLE IF EXISTS {table}")
            conn.exec_driver_sql(f"CREATE TABLE {table} ({schema_sql})")

        created.append(table)
        return table

    yield _create

    with engine.begin() as conn:
        for table in created:
            conn.exec_driver_sql(f"DROP TABLE IF EXISTS {table}")


@pytest.fixture
def medicines_table(table_factory: Callable[[str], str]) -> str:
    """A trimmed-down medicines table."""
    return table_factory(
        """
        id VARCHAR(64) NOT NULL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        stock INT NOT NULL DEFAULT 0,
        price DECIMAL(10, 2) NULL
        """
    )


class FakeRemote:
    """
    In-process RemoteStore recording every call.

    ``fail_on`` holds predicates; a call matching any of them raises
    RemoteOperationFailed. ``gate`` (if set) is waited on before each call,
    which lets tests hold a replay in flight.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.fail_on: list[Callable[[str, str, Mapping[str, Any]], bool]] = []
        self.gate: threading.Event | None = None
        self.entered = threading.Event()
        self._lock = threading.Lock()

    def _call(self, kind: str, table: str, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        self.entered.set()
        if self.gate is not None:
            assert self.gate.wait(timeout=5), "gate was never released"
        if any(pred(kind, table, data) for pred in self.fail_on):
            raise RemoteOperationFailed(f"rejected {kind} on {table}", table=table, kind=kind)
        with self._lock:
            self.calls.append((kind, table, dict(data)))
        return [dict(data)]

    def insert(self, table: str, record: Mapping[str, Any]) -> list[dict[str, Any]]:
        return self._call("insert", table, record)

    def update(self, table: str, patch: Mapping[str, Any], match_id: Any) -> list[dict[str, Any]]:
        return self._call("update", table, {**patch, "id": match_id})

    def delete(self, table: str, match_id: Any) -> list[dict[str, Any]]:
        self._call("delete", table, {"id": match_id})
        return []


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def storage() -> MemoryQueueStorage:
    return MemoryQueueStorage()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def offline() -> ConnectivityMonitor:
    return ConnectivityMonitor(initial=ConnectivityState.OFFLINE)


@pytest.fixture
def online() -> ConnectivityMonitor:
    return ConnectivityMonitor(initial=ConnectivityState.ONLINE)
