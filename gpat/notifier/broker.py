"""
Delayed-job broker interface and a SQLite-backed implementation.

The scheduler only ever talks to a JobBroker:
    schedule(delay_seconds, user_id, measure_id)
    cancel_pending(kind, predicate)
    pending(kind)

Broker errors surface as NotificationSchedulingFailure so the scheduler has
one exception type to log and swallow.
"""

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from gpat import config
from gpat.errors import NotificationSchedulingFailure
from gpat.store import RecordStore
from gpat.utils import now_utc_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Job:
    """A pending delayed job."""

    id: int | None
    kind: str
    user_id: int
    measure_id: int
    run_at: str


class JobBroker(Protocol):
    def schedule(self, delay_seconds: int, user_id: int, measure_id: int) -> Job: ...

    def cancel_pending(self, kind: str, predicate: Callable[[Job], bool]) -> int: ...

    def pending(self, kind: str) -> list[Job]: ...


class SqliteJobBroker:
    """
    Jobs kept in the scheduled_jobs table; a worker deletes rows it runs.

    (kind, user_id, measure_id) is unique, so scheduling a pair that already
    has a pending job moves its run_at instead of adding a second row.
    """

    def __init__(self, store: RecordStore, kind: str = config.TASK_NOTIFICATION_JOB):
        self.store = store
        self.kind = kind

    def schedule(self, delay_seconds: int, user_id: int, measure_id: int) -> Job:
        run_at = (utc_now() + timedelta(seconds=delay_seconds)).isoformat(timespec="microseconds")
        try:
            row = self.store.conn.execute(
                """
                INSERT INTO scheduled_jobs (kind, user_id, measure_id, run_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(kind, user_id, measure_id) DO UPDATE SET run_at = excluded.run_at
                RETURNING id
                """,
                (self.kind, user_id, measure_id, run_at, now_utc_iso()),
            ).fetchone()
            self.store.conn.commit()
        except sqlite3.Error as e:
            raise NotificationSchedulingFailure(f"schedule {self.kind} failed: {e}") from e
        logger.debug(f"Scheduled {self.kind} for user {user_id} measure {measure_id} at {run_at}")
        return Job(row["id"], self.kind, user_id, measure_id, run_at)

    def pending(self, kind: str) -> list[Job]:
        try:
            rows = self.store.conn.execute(
                "SELECT id, kind, user_id, measure_id, run_at FROM scheduled_jobs WHERE kind = ? ORDER BY id",
                (kind,),
            ).fetchall()
        except sqlite3.Error as e:
            raise NotificationSchedulingFailure(f"list {kind} failed: {e}") from e
        return [Job(r["id"], r["kind"], r["user_id"], r["measure_id"], r["run_at"]) for r in rows]

    def cancel_pending(self, kind: str, predicate: Callable[[Job], bool]) -> int:
        doomed = [job.id for job in self.pending(kind) if predicate(job)]
        if not doomed:
            return 0
        marks = ", ".join("?" for _ in doomed)
        try:
            self.store.conn.execute(f"DELETE FROM scheduled_jobs WHERE id IN ({marks})", doomed)
            self.store.conn.commit()
        except sqlite3.Error as e:
            raise NotificationSchedulingFailure(f"cancel {kind} failed: {e}") from e
        return len(doomed)
