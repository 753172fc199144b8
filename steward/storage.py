"""
Record storage for routing decisions and performance outcomes.

Two interchangeable stores implement the RecordStore protocol: an in-memory
store for tests and short-lived processes, and a SQLite store (WAL mode,
one connection per operation) for persistence across sessions.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class PerformanceRecord:
    """Outcome of one model invocation. Append-only."""

    model: str
    task_type: str
    response_time_ms: float
    success: bool
    hour_of_day: int
    day_of_week: int  # Monday = 0
    session_id: str
    timestamp: float
    error_kind: str | None = None
    tokens: int | None = None
    user_rating: float | None = None
    adapter_type: str = "unknown"
    decision_confidence: float | None = None
    context_snapshot: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceRecord:
        return cls(**data)


@dataclass
class DecisionRecord:
    """A routing decision as persisted next to its performance records."""

    task_type: str
    prompt_snippet: str
    chosen_model: str
    routing_reason: str
    strategy: str
    alternatives: list[str]
    hour_of_day: int
    confidence: float
    privacy_protected: bool
    timestamp: float
    id: int | None = None


@runtime_checkable
class RecordStore(Protocol):
    """Storage collaborator used by the performance recorder."""

    def insert_performance_record(self, record: PerformanceRecord) -> int | None: ...

    def insert_routing_decision(self, record: DecisionRecord) -> int | None: ...

    def query_aggregates(self, task_type: str, since: float) -> list[PerformanceRecord]: ...


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryRecordStore:
    """Thread-safe in-process record store."""

    def __init__(self) -> None:
        self._performance: list[PerformanceRecord] = []
        self._decisions: list[DecisionRecord] = []
        self._lock = threading.Lock()

    def insert_performance_record(self, record: PerformanceRecord) -> int | None:
        with self._lock:
            record_id = len(self._performance) + 1
            self._performance.append(_copy_performance(record, record_id))
            return record_id

    def insert_routing_decision(self, record: DecisionRecord) -> int | None:
        with self._lock:
            record_id = len(self._decisions) + 1
            stored = DecisionRecord(**{**asdict(record), "id": record_id})
            self._decisions.append(stored)
            return record_id

    def query_aggregates(self, task_type: str, since: float) -> list[PerformanceRecord]:
        """Records for a task type at or after `since`, newest first."""
        with self._lock:
            matching = [
                r for r in self._performance if r.task_type == task_type and r.timestamp >= since
            ]
        return sorted(matching, key=lambda r: r.timestamp, reverse=True)

    @property
    def decisions(self) -> list[DecisionRecord]:
        with self._lock:
            return list(self._decisions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._performance)


def _copy_performance(record: PerformanceRecord, record_id: int) -> PerformanceRecord:
    data = record.to_dict()
    data["id"] = record_id
    data["context_snapshot"] = dict(record.context_snapshot)
    return PerformanceRecord.from_dict(data)


# =============================================================================
# SQLite store
# =============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS performance_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    model TEXT NOT NULL,
    task_type TEXT NOT NULL,
    response_time_ms REAL NOT NULL DEFAULT 0,
    success INTEGER NOT NULL CHECK(success IN (0, 1)),
    error_kind TEXT,
    tokens INTEGER,
    user_rating REAL,
    hour_of_day INTEGER NOT NULL CHECK(hour_of_day >= 0 AND hour_of_day <= 23),
    day_of_week INTEGER NOT NULL CHECK(day_of_week >= 0 AND day_of_week <= 6),
    session_id TEXT NOT NULL,
    adapter_type TEXT NOT NULL DEFAULT 'unknown',
    decision_confidence REAL,
    context_snapshot JSON DEFAULT '{}',
    timestamp REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS routing_decisions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    task_type TEXT NOT NULL,
    prompt_snippet TEXT,
    chosen_model TEXT NOT NULL,
    routing_reason TEXT,
    strategy TEXT NOT NULL,
    alternatives JSON DEFAULT '[]',
    hour_of_day INTEGER NOT NULL,
    confidence REAL NOT NULL,
    privacy_protected INTEGER NOT NULL CHECK(privacy_protected IN (0, 1)),
    timestamp REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_performance_task_time
    ON performance_records(task_type, timestamp);
CREATE INDEX IF NOT EXISTS idx_performance_model ON performance_records(model);
CREATE INDEX IF NOT EXISTS idx_decisions_time ON routing_decisions(timestamp);
"""


class SQLiteRecordStore:
    """
    Persistent record store using SQLite.

    Features:
    - WAL mode for concurrent readers and appenders
    - A fresh connection per operation, so instances can be shared across threads
    """

    def __init__(self, db_path: str | None = None):
        """
        Initialize record store.

        Args:
            db_path: Path to SQLite database. If None, uses STEWARD_DB_PATH or the default.
        """
        if db_path is None:
            db_path = os.environ.get("STEWARD_DB_PATH") or str(
                Path.home() / ".steward" / "performance.db"
            )

        self.db_path = str(Path(db_path).expanduser())
        self._ensure_directory()
        self._init_database()
        logger.info(f"Opened performance store at {self.db_path}")

    def _ensure_directory(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _init_database(self) -> None:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def insert_performance_record(self, record: PerformanceRecord) -> int | None:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO performance_records (
                    model, task_type, response_time_ms, success, error_kind, tokens,
                    user_rating, hour_of_day, day_of_week, session_id, adapter_type,
                    decision_confidence, context_snapshot, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.model,
                    record.task_type,
                    record.response_time_ms,
                    int(record.success),
                    record.error_kind,
                    record.tokens,
                    record.user_rating,
                    record.hour_of_day,
                    record.day_of_week,
                    record.session_id,
                    record.adapter_type,
                    record.decision_confidence,
                    json.dumps(record.context_snapshot),
                    record.timestamp,
                ),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def insert_routing_decision(self, record: DecisionRecord) -> int | None:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO routing_decisions (
                    task_type, prompt_snippet, chosen_model, routing_reason, strategy,
                    alternatives, hour_of_day, confidence, privacy_protected, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.task_type,
                    record.prompt_snippet,
                    record.chosen_model,
                    record.routing_reason,
                    record.strategy,
                    json.dumps(record.alternatives),
                    record.hour_of_day,
                    record.confidence,
                    int(record.privacy_protected),
                    record.timestamp,
                ),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def query_aggregates(self, task_type: str, since: float) -> list[PerformanceRecord]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM performance_records
                WHERE task_type = ? AND timestamp >= ?
                ORDER BY timestamp DESC
                """,
                (task_type, since),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_record(row) for row in rows]

    def get_routing_decision(self, decision_id: int) -> DecisionRecord | None:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM routing_decisions WHERE id = ?", (decision_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return DecisionRecord(
            id=row["id"],
            task_type=row["task_type"],
            prompt_snippet=row["prompt_snippet"],
            chosen_model=row["chosen_model"],
            routing_reason=row["routing_reason"],
            strategy=row["strategy"],
            alternatives=json.loads(row["alternatives"] or "[]"),
            hour_of_day=row["hour_of_day"],
            confidence=row["confidence"],
            privacy_protected=bool(row["privacy_protected"]),
            timestamp=row["timestamp"],
        )

    def _row_to_record(self, row: sqlite3.Row) -> PerformanceRecord:
        return PerformanceRecord(
            id=row["id"],
            model=row["model"],
            task_type=row["task_type"],
            response_time_ms=row["response_time_ms"],
            success=bool(row["success"]),
            error_kind=row["error_kind"],
            tokens=row["tokens"],
            user_rating=row["user_rating"],
            hour_of_day=row["hour_of_day"],
            day_of_week=row["day_of_week"],
            session_id=row["session_id"],
            adapter_type=row["adapter_type"],
            decision_confidence=row["decision_confidence"],
            context_snapshot=json.loads(row["context_snapshot"] or "{}"),
            timestamp=row["timestamp"],
        )
