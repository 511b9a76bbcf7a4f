"""
Durable lifecycle store backed by SQLite.

Workflow engines record every run here when a store is supplied: one row per
attempted transition in `transitions`, plus the last known state of each
project in `project_states` (updated on success only).

Usage:
    async with SQLiteStateStore(Path(".plm/state/lifecycle.db")) as store:
        await store.initialize()
        state = await store.get_state("p1")
        history = await store.get_history("p1")
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

import aiosqlite

from plm.state.lifecycle import LifecycleState, parse_state


@dataclass(slots=True)
class TransitionRecord:
    """One attempted transition as stored in the `transitions` table."""

    project_id: str
    transition: str
    from_state: Optional[str]
    to_state: Optional[str]
    success: bool
    correlation_id: str
    failure_kind: Optional[str] = None
    error: Optional[str] = None
    identifiers: Dict[str, Optional[str]] = field(default_factory=dict)
    duration_ms: float = 0.0
    project_path: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StateStore(Protocol):
    """Interface the workflow engines use to persist outcomes."""

    async def record_transition(self, record: TransitionRecord) -> None:
        ...

    async def get_state(self, project_id: str) -> Optional[LifecycleState]:
        ...


class SQLiteStateStore:
    """
    StateStore over an aiosqlite connection.

    The connection is opened lazily and reused; call `close()` or use the
    store as an async context manager.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None
        self.logger = logging.getLogger(__name__)

    async def __aenter__(self) -> "SQLiteStateStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self.db_path))
            conn.row_factory = aiosqlite.Row
            # Schema statements are all IF NOT EXISTS
            schema_sql = (Path(__file__).parent / "schema.sql").read_text()
            await conn.executescript(schema_sql)
            await conn.commit()
            self._conn = conn
        yield self._conn

    async def initialize(self) -> None:
        """Create the database file and schema if missing."""
        async with self._get_connection():
            pass

    async def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def record_transition(self, record: TransitionRecord) -> None:
        recorded_at = record.recorded_at.isoformat()
        async with self._get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO transitions (
                    project_id, transition, from_state, to_state, success,
                    failure_kind, error, correlation_id, identifiers,
                    duration_ms, recorded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.project_id,
                    record.transition,
                    record.from_state,
                    record.to_state,
                    int(record.success),
                    record.failure_kind,
                    record.error,
                    record.correlation_id,
                    json.dumps(record.identifiers),
                    record.duration_ms,
                    recorded_at,
                ),
            )
            if record.success and record.to_state:
                await conn.execute(
                    """
                    INSERT INTO project_states (
                        project_id, state, project_path, last_transition,
                        correlation_id, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(project_id) DO UPDATE SET
                        state = excluded.state,
                        project_path = COALESCE(excluded.project_path, project_states.project_path),
                        last_transition = excluded.last_transition,
                        correlation_id = excluded.correlation_id,
                        updated_at = excluded.updated_at
                    """,
                    (
                        record.project_id,
                        record.to_state,
                        record.project_path,
                        record.transition,
                        record.correlation_id,
                        recorded_at,
                    ),
                )
            await conn.commit()

        self.logger.debug(
            f"Recorded {record.transition} for {record.project_id}: "
            f"{'success' if record.success else 'failure'}"
        )

    async def get_state(self, project_id: str) -> Optional[LifecycleState]:
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                "SELECT state FROM project_states WHERE project_id = ?",
                (project_id,),
            )
            row = await cursor.fetchone()
        return parse_state(row["state"]) if row else None

    async def get_history(self, project_id: str, limit: int = 50) -> List[TransitionRecord]:
        """Return the most recent transitions of a project, oldest first."""
        async with self._get_connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM transitions
                WHERE project_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (project_id, limit),
            )
            rows = await cursor.fetchall()

        return [self._row_to_record(row) for row in reversed(rows)]

    def _row_to_record(self, row: aiosqlite.Row) -> TransitionRecord:
        return TransitionRecord(
            project_id=row["project_id"],
            transition=row["transition"],
            from_state=row["from_state"],
            to_state=row["to_state"],
            success=bool(row["success"]),
            correlation_id=row["correlation_id"],
            failure_kind=row["failure_kind"],
            error=row["error"],
            identifiers=json.loads(row["identifiers"] or "{}"),
            duration_ms=row["duration_ms"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )


__all__ = ["SQLiteStateStore", "StateStore", "TransitionRecord"]
