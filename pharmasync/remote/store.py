from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Mapping, Optional, Protocol, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import RemoteConfig
from ..errors import RemoteOperationFailed
from ..identifiers import validate_identifier
from .metrics import observe_remote_write
from .session import DbSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteStore(Protocol):
    """
    Remote store collaborator used by the offline queue.

    Every method raises RemoteOperationFailed when the store rejects the
    write or cannot be reached. Returned rows are plain dicts.
    """

    def insert(self, table: str, record: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Insert ``record`` into ``table`` and return the stored row(s)."""
        ...

    def update(self, table: str, patch: Mapping[str, Any], match_id: Any) -> list[dict[str, Any]]:
        """Apply ``patch`` to the row identified by ``match_id`` and return it."""
        ...

    def delete(self, table: str, match_id: Any) -> list[dict[str, Any]]:
        """Delete the row identified by ``match_id``."""
        ...


class SqlRemoteStore:
    """
    RemoteStore over a SQLAlchemy engine.

    Each call runs in its own DbSession (one transaction, committed on
    success and rolled back on error). Table and column names are validated
    identifiers; values are always bound parameters.

    Semantics:
    - insert: plain INSERT, no upsert. Duplicate keys surface as
      RemoteOperationFailed.
    - update: rows are matched on the configured id column. Matching no
      row is a conflict and raises RemoteOperationFailed.
    - delete: deleting a row that no longer exists succeeds.
    """

    def __init__(self, engine: Engine, config: Optional[RemoteConfig] = None) -> None:
        self.engine = engine
        self.config = config or RemoteConfig()

    def insert(self, table: str, record: Mapping[str, Any]) -> list[dict[str, Any]]:
        table = validate_identifier(table, "table")
        cols = [validate_identifier(c, "column name") for c in record.keys()]
        if not cols:
            raise ValueError("insert requires at least one column")

        def _insert(session: DbSession) -> list[dict[str, Any]]:
            col_names = ", ".join(cols)
            placeholders = ", ".join(f":{c}" for c in cols)
            session.execute(f"INSERT INTO {table} ({col_names}) VALUES ({placeholders})", dict(record))

            id_column = self.config.id_column
            if id_column in record:
                row = self._select_by_id(session, table, record[id_column])
                if row is not None:
                    return [row]
            return [dict(record)]

        return self._run(table, "insert", _insert)

    def update(self, table: str, patch: Mapping[str, Any], match_id: Any) -> list[dict[str, Any]]:
        table = validate_identifier(table, "table")
        id_column = self.config.id_column
        cols = [validate_identifier(c, "column name") for c in patch.keys() if c != id_column]

        def _update(session: DbSession) -> list[dict[str, Any]]:
            if cols:
                set_clause = ", ".join(f"{c} = :{c}" for c in cols)
                params = {c: patch[c] for c in cols}
                params["match_id"] = match_id
                rowcount = session.execute(
                    f"UPDATE {table} SET {set_clause} WHERE {id_column} = :match_id",
                    params,
                )
                if rowcount == 0:
                    raise RemoteOperationFailed(
                        f"No row in {table} with {id_column}={match_id!r}",
                        table=table,
                        kind="update",
                    )

            row = self._select_by_id(session, table, match_id)
            if row is None:
                raise RemoteOperationFailed(
                    f"No row in {table} with {id_column}={match_id!r}",
                    table=table,
                    kind="update",
                )
            return [row]

        return self._run(table, "update", _update)

    def delete(self, table: str, match_id: Any) -> list[dict[str, Any]]:
        table = validate_identifier(table, "table")
        id_column = self.config.id_column

        def _delete(session: DbSession) -> list[dict[str, Any]]:
            rowcount = session.execute(
                f"DELETE FROM {table} WHERE {id_column} = :match_id",
                {"match_id": match_id},
            )
            if rowcount == 0:
                logger.info("Delete from %s matched no row for %s=%r", table, id_column, match_id)
            return []

        return self._run(table, "delete", _delete)

    def _select_by_id(self, session: DbSession, table: str, match_id: Any) -> dict[str, Any] | None:
        return session.fetch_one(
            f"SELECT * FROM {table} WHERE {self.config.id_column} = :match_id",
            {"match_id": match_id},
        )

    def _run(self, table: str, op_type: str, fn: Callable[[DbSession], T]) -> T:
        """
        Run ``fn`` in a fresh transaction, wrapping driver errors in
        RemoteOperationFailed and recording the write metrics.
        """
        start_time = time.monotonic()
        status = "success"

        try:
            with DbSession(self.engine) as session:
                return fn(session)
        except RemoteOperationFailed:
            status = "error"
            raise
        except SQLAlchemyError as exc:
            status = "error"
            raise RemoteOperationFailed(str(exc), table=table, kind=op_type) from exc
        finally:
            latency = time.monotonic() - start_time
            observe_remote_write(table, op_type, status, latency)
