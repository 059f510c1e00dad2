"""SQLite persistence for scheduled jobs.

Every reminder is one row in the ``jobs`` table. The row id is the reminder
id. Failed jobs stay in the table for operators to inspect and are never
listed or rescheduled.
"""

import json
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from logger import logger
from .models import ScheduledJob

# Payload keys usable in filters (they are spliced into a JSON path)
_FILTER_KEY = re.compile(r"^[a-z_][a-z0-9_]*$")

_SORT_COLUMNS = {"next_run_at", "last_run_at", "created_at"}


def _to_ts(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_ts(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _row_to_job(row: sqlite3.Row) -> ScheduledJob:
    payload = json.loads(row["payload"]) if row["payload"] is not None else None
    return ScheduledJob(
        id=row["id"],
        kind=row["kind"],
        payload=payload,
        next_run_at=_from_ts(row["next_run_at"]),
        last_run_at=_from_ts(row["last_run_at"]),
        locked_at=_from_ts(row["locked_at"]),
        failed_at=_from_ts(row["failed_at"]),
        fail_reason=row["fail_reason"],
        created_at=_from_ts(row["created_at"]),
    )


class JobStore:
    """Durable job table backed by one SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection with WAL mode."""
        if self._connection is not None:
            return self._connection

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = sqlite3.connect(
            self.db_path,
            check_same_thread=False,  # APScheduler may call from its own thread on shutdown
            timeout=10.0
        )
        self._connection.row_factory = sqlite3.Row
        self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.execute("PRAGMA busy_timeout=5000")
        self._init_schema(self._connection)

        logger.info(f"Job store initialized: {self.db_path}")
        return self._connection

    @staticmethod
    def _init_schema(conn: sqlite3.Connection) -> None:
        """Create tables if they don't exist."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS jobs (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                kind TEXT NOT NULL,
                payload TEXT,
                next_run_at REAL,
                last_run_at REAL,
                locked_at REAL,
                failed_at REAL,
                fail_reason TEXT,
                created_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_jobs_kind_next ON jobs(kind, next_run_at);
            CREATE INDEX IF NOT EXISTS idx_jobs_failed ON jobs(failed_at);
        """)
        conn.commit()

    @contextmanager
    def _transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def create(self, kind: str, payload: dict, next_run_at: datetime) -> ScheduledJob:
        """Insert a job that is due at ``next_run_at``.

        Args:
            kind: Job kind, used to pick the handler when it fires
            payload: JSON-serialisable payload
            next_run_at: When the job becomes due

        Returns:
            The stored job, with its new id
        """
        if next_run_at is None:
            raise ValueError("next_run_at is required")

        job_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO jobs (id, kind, payload, next_run_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (job_id, kind, json.dumps(payload), _to_ts(next_run_at), _to_ts(now))
            )
        logger.debug(f"Job {job_id} ({kind}) stored for {next_run_at.isoformat()}")
        return self.get(job_id)

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        """Get a specific job by id."""
        row = self._get_connection().execute(
            "SELECT * FROM jobs WHERE id = ?",
            (job_id,)
        ).fetchone()
        return _row_to_job(row) if row else None

    def _where(
        self,
        kind: Optional[str],
        payload_filter: Optional[dict],
        include_failed: bool
    ) -> tuple[str, list]:
        clauses = []
        params: list = []
        if kind is not None:
            clauses.append("kind = ?")
            params.append(kind)
        for key, value in (payload_filter or {}).items():
            if not _FILTER_KEY.match(key):
                raise ValueError(f"Invalid payload filter key: {key!r}")
            clauses.append(f"json_extract(payload, '$.{key}') = ?")
            params.append(value)
        if not include_failed:
            clauses.append("failed_at IS NULL")
        where = " AND ".join(clauses) if clauses else "1 = 1"
        return where, params

    def query(
        self,
        kind: Optional[str] = None,
        payload_filter: Optional[dict] = None,
        order_by: str = "next_run_at",
        include_failed: bool = False
    ) -> list[ScheduledJob]:
        """Find jobs matching a filter, ascending by ``order_by``.

        Ties are broken by insertion order.

        Args:
            kind: Only jobs of this kind
            payload_filter: Payload key/value pairs that must all match
            order_by: Timestamp column to sort on
            include_failed: Include jobs marked failed

        Returns:
            Matching jobs
        """
        if order_by not in _SORT_COLUMNS:
            raise ValueError(f"Cannot sort jobs by {order_by!r}")

        where, params = self._where(kind, payload_filter, include_failed)
        rows = self._get_connection().execute(
            f"SELECT * FROM jobs WHERE {where} ORDER BY {order_by} ASC, seq ASC",
            params
        ).fetchall()
        return [_row_to_job(row) for row in rows]

    def get_pending(self) -> list[ScheduledJob]:
        """Jobs that still have to fire (not claimed, not failed)."""
        rows = self._get_connection().execute(
            """
            SELECT * FROM jobs
            WHERE locked_at IS NULL AND failed_at IS NULL AND next_run_at IS NOT NULL
            ORDER BY next_run_at ASC, seq ASC
            """
        ).fetchall()
        return [_row_to_job(row) for row in rows]

    def cancel(self, job_id: str) -> int:
        """Delete a job by id.

        Returns:
            Number of jobs removed (0 or 1)
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            return cursor.rowcount

    def cancel_by_filter(
        self,
        kind: Optional[str] = None,
        payload_filter: Optional[dict] = None
    ) -> list[str]:
        """Delete every job matching a filter.

        Returns:
            Ids of the removed jobs
        """
        where, params = self._where(kind, payload_filter, include_failed=True)
        with self._transaction() as conn:
            ids = [row["id"] for row in conn.execute(f"SELECT id FROM jobs WHERE {where}", params)]
            conn.execute(f"DELETE FROM jobs WHERE {where}", params)
        return ids

    def claim(self, job_id: str, run_at: datetime) -> bool:
        """Lock a job for a run and record its fire time.

        Only one caller can claim a job, so a job delivered once is not
        delivered again by a late duplicate trigger.

        Returns:
            True if this caller now owns the run
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE jobs SET locked_at = ?, last_run_at = ?
                WHERE id = ? AND locked_at IS NULL AND failed_at IS NULL
                """,
                (_to_ts(datetime.now(timezone.utc)), _to_ts(run_at), job_id)
            )
            return cursor.rowcount == 1

    def release_stale_locks(self, older_than: datetime, keep: Iterable[str] = ()) -> int:
        """Unlock jobs whose run never finished (e.g. the process died).

        Args:
            older_than: Only locks taken before this time are released
            keep: Ids of jobs still running in this process

        Returns:
            Number of jobs unlocked
        """
        keep = list(keep)
        sql = """
            UPDATE jobs SET locked_at = NULL
            WHERE locked_at IS NOT NULL AND locked_at < ? AND failed_at IS NULL
        """
        if keep:
            sql += f" AND id NOT IN ({', '.join('?' * len(keep))})"

        with self._transaction() as conn:
            cursor = conn.execute(sql, [_to_ts(older_than), *keep])
            if cursor.rowcount:
                logger.warning(f"Released {cursor.rowcount} stale job lock(s)")
            return cursor.rowcount

    def mark_failed(self, job_id: str, reason: str) -> None:
        """Mark a job as failed. It stays in the table but never runs again."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE jobs SET failed_at = ?, fail_reason = ? WHERE id = ?",
                (_to_ts(datetime.now(timezone.utc)), reason, job_id)
            )

    def delete(self, job_id: str) -> None:
        """Remove a finished job."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))

    def get_failed(self) -> list[ScheduledJob]:
        """Failed jobs, newest failure first (for operators)."""
        rows = self._get_connection().execute(
            "SELECT * FROM jobs WHERE failed_at IS NOT NULL ORDER BY failed_at DESC"
        ).fetchall()
        return [_row_to_job(row) for row in rows]
