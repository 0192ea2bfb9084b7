"""SQLite record store for the GPAT registry."""

import logging
import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from pathlib import Path

from gpat import config, paths
from gpat.models import JOINS, TABLES, TOUCHABLE_KINDS, JoinKind, JoinSpec, Kind
from gpat.utils import now_utc_iso

log = logging.getLogger(__name__)

SCHEMA = """
-- Users (assignees of tasks)
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    relationship_updated_at TEXT,
    relationship_updated_by_id INTEGER
);

-- Categories / resources: plain referenced records
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER
);

CREATE TABLE IF NOT EXISTS resources (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER
);

-- Actors (countries, organisations, contacts, groups)
CREATE TABLE IF NOT EXISTS actors (
    id INTEGER PRIMARY KEY,
    actortype_id INTEGER NOT NULL,
    parent_id INTEGER REFERENCES actors(id) ON DELETE SET NULL,
    manager_id INTEGER REFERENCES users(id) ON DELETE SET NULL,

    code TEXT,
    prefix TEXT,
    title TEXT NOT NULL,
    description TEXT,
    activity_summary TEXT,
    address TEXT,
    email TEXT,
    phone TEXT,
    url TEXT,
    gdp REAL,
    population INTEGER,

    draft INTEGER NOT NULL DEFAULT 0,
    private INTEGER NOT NULL DEFAULT 0,
    is_archive INTEGER NOT NULL DEFAULT 0,
    public_api INTEGER NOT NULL DEFAULT 0,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    relationship_updated_at TEXT,
    relationship_updated_by_id INTEGER
);

-- Measures (statements, events, tasks, operations)
CREATE TABLE IF NOT EXISTS measures (
    id INTEGER PRIMARY KEY,
    measuretype_id INTEGER NOT NULL,
    parent_id INTEGER REFERENCES measures(id) ON DELETE SET NULL,

    code TEXT,
    title TEXT NOT NULL,
    description TEXT,
    comment TEXT,
    outcome TEXT,
    url TEXT,
    amount REAL,
    amount_comment TEXT,
    date_start TEXT,
    date_end TEXT,
    date_comment TEXT,
    target_date TEXT,
    target_date_comment TEXT,
    target_comment TEXT,
    status_comment TEXT,
    quote_api TEXT,
    source_api TEXT,

    notifications INTEGER NOT NULL DEFAULT 1,
    is_official INTEGER NOT NULL DEFAULT 0,
    draft INTEGER NOT NULL DEFAULT 0,
    private INTEGER NOT NULL DEFAULT 0,
    is_archive INTEGER NOT NULL DEFAULT 0,
    public_api INTEGER NOT NULL DEFAULT 0,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    relationship_updated_at TEXT,
    relationship_updated_by_id INTEGER
);

-- Indicators (topics)
CREATE TABLE IF NOT EXISTS indicators (
    id INTEGER PRIMARY KEY,
    parent_id INTEGER REFERENCES indicators(id) ON DELETE SET NULL,
    manager_id INTEGER REFERENCES users(id) ON DELETE SET NULL,

    code TEXT,
    code_api TEXT,
    title TEXT NOT NULL,
    short_api TEXT,
    teaser_api TEXT,
    annotation_api TEXT,
    description TEXT,
    reference TEXT,

    start_date TEXT,
    end_date TEXT,
    repeat INTEGER NOT NULL DEFAULT 0,
    frequency_months INTEGER,

    draft INTEGER NOT NULL DEFAULT 0,
    private INTEGER NOT NULL DEFAULT 0,
    is_archive INTEGER NOT NULL DEFAULT 0,
    public_api INTEGER NOT NULL DEFAULT 0,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    relationship_updated_at TEXT,
    relationship_updated_by_id INTEGER
);

CREATE TABLE IF NOT EXISTS indicator_due_dates (
    id INTEGER PRIMARY KEY,
    indicator_id INTEGER NOT NULL REFERENCES indicators(id) ON DELETE CASCADE,
    due_date TEXT NOT NULL,
    created_at TEXT NOT NULL
);

-- Join rows
CREATE TABLE IF NOT EXISTS actor_measures (
    id INTEGER PRIMARY KEY,
    actor_id INTEGER NOT NULL REFERENCES actors(id) ON DELETE CASCADE,
    measure_id INTEGER NOT NULL REFERENCES measures(id) ON DELETE CASCADE,
    date_start TEXT,
    date_end TEXT,
    value REAL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (actor_id, measure_id)
);

CREATE TABLE IF NOT EXISTS measure_actors (
    id INTEGER PRIMARY KEY,
    measure_id INTEGER NOT NULL REFERENCES measures(id) ON DELETE CASCADE,
    actor_id INTEGER NOT NULL REFERENCES actors(id) ON DELETE CASCADE,
    date_start TEXT,
    date_end TEXT,
    value REAL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (measure_id, actor_id)
);

CREATE TABLE IF NOT EXISTS measure_categories (
    id INTEGER PRIMARY KEY,
    measure_id INTEGER NOT NULL REFERENCES measures(id) ON DELETE CASCADE,
    category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (measure_id, category_id)
);

CREATE TABLE IF NOT EXISTS measure_indicators (
    id INTEGER PRIMARY KEY,
    measure_id INTEGER NOT NULL REFERENCES measures(id) ON DELETE CASCADE,
    indicator_id INTEGER NOT NULL REFERENCES indicators(id) ON DELETE CASCADE,
    supportlevel_id INTEGER,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (measure_id, indicator_id)
);

CREATE TABLE IF NOT EXISTS measure_resources (
    id INTEGER PRIMARY KEY,
    measure_id INTEGER NOT NULL REFERENCES measures(id) ON DELETE CASCADE,
    resource_id INTEGER NOT NULL REFERENCES resources(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (measure_id, resource_id)
);

CREATE TABLE IF NOT EXISTS user_measures (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    measure_id INTEGER NOT NULL REFERENCES measures(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (user_id, measure_id)
);

CREATE TABLE IF NOT EXISTS memberships (
    id INTEGER PRIMARY KEY,
    member_id INTEGER NOT NULL REFERENCES actors(id) ON DELETE CASCADE,
    memberof_id INTEGER NOT NULL REFERENCES actors(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    created_by_id INTEGER,
    updated_by_id INTEGER,
    UNIQUE (member_id, memberof_id)
);

-- Delayed jobs (SqliteJobBroker)
CREATE TABLE IF NOT EXISTS scheduled_jobs (
    id INTEGER PRIMARY KEY,
    kind TEXT NOT NULL,
    user_id INTEGER NOT NULL,
    measure_id INTEGER NOT NULL,
    run_at TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_actors_parent ON actors(parent_id);
CREATE INDEX IF NOT EXISTS idx_measures_parent ON measures(parent_id);
CREATE INDEX IF NOT EXISTS idx_indicators_parent ON indicators(parent_id);
CREATE INDEX IF NOT EXISTS idx_due_dates_indicator ON indicator_due_dates(indicator_id);
CREATE INDEX IF NOT EXISTS idx_user_measures_measure ON user_measures(measure_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_scheduled_jobs_unique_pair ON scheduled_jobs(kind, user_id, measure_id);
"""


def _row(row: sqlite3.Row | None) -> dict | None:
    return dict(row) if row is not None else None


class RecordStore:
    """
    Rows in, dicts out.

    Holds one connection for its lifetime. Writes happen inside
    transaction(); outside one, each statement commits on its own.
    """

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = str(db_path or paths.db_path())
        self.conn = sqlite3.connect(self.db_path, timeout=config.SQLITE_TIMEOUT)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._depth = 0

    def init_schema(self) -> None:
        """Create tables. Safe to call multiple times."""
        self.conn.executescript(SCHEMA)
        self.conn.execute("PRAGMA foreign_keys=ON")

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any error. Nested calls join the outer one."""
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.conn.rollback()
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self.conn.commit()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def _commit_if_idle(self) -> None:
        if self._depth == 0:
            self.conn.commit()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def get(self, kind: Kind, record_id: int) -> dict | None:
        row = self.conn.execute(f"SELECT * FROM {TABLES[kind]} WHERE id = ?", (record_id,)).fetchone()
        return _row(row)

    def all(self, kind: Kind, order_by: str = "id") -> list[dict]:
        rows = self.conn.execute(f"SELECT * FROM {TABLES[kind]} ORDER BY {order_by}").fetchall()
        return [dict(r) for r in rows]

    def insert(self, kind: Kind, values: dict, user_id: int | None = None) -> dict:
        now = now_utc_iso()
        data = dict(values)
        data.setdefault("created_at", now)
        data.setdefault("updated_at", now)
        if kind != Kind.USER:
            data.setdefault("created_by_id", user_id)
            data.setdefault("updated_by_id", user_id)
        cols = ", ".join(data)
        marks = ", ".join("?" for _ in data)
        cursor = self.conn.execute(
            f"INSERT INTO {TABLES[kind]} ({cols}) VALUES ({marks})",
            tuple(data.values()),
        )
        self._commit_if_idle()
        return self.get(kind, cursor.lastrowid)

    def update(self, kind: Kind, record_id: int, values: dict, user_id: int | None = None) -> dict | None:
        data = dict(values)
        data["updated_at"] = now_utc_iso()
        if kind != Kind.USER:
            data["updated_by_id"] = user_id
        assignments = ", ".join(f"{col} = ?" for col in data)
        self.conn.execute(
            f"UPDATE {TABLES[kind]} SET {assignments} WHERE id = ?",
            (*data.values(), record_id),
        )
        self._commit_if_idle()
        return self.get(kind, record_id)

    def delete(self, kind: Kind, record_id: int) -> bool:
        cursor = self.conn.execute(f"DELETE FROM {TABLES[kind]} WHERE id = ?", (record_id,))
        self._commit_if_idle()
        return cursor.rowcount > 0

    def touch(self, kind: Kind, record_id: int, user_id: int | None, at: str | None = None) -> bool:
        """
        Stamp relationship_updated_at/_by_id with a direct column update.

        Leaves updated_at alone and fires no hooks. Returns False when the
        record no longer exists.
        """
        if kind not in TOUCHABLE_KINDS:
            return False
        cursor = self.conn.execute(
            f"UPDATE {TABLES[kind]} SET relationship_updated_at = ?, relationship_updated_by_id = ? WHERE id = ?",
            (at or now_utc_iso(), user_id, record_id),
        )
        self._commit_if_idle()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Hierarchy lookups (ParentLookup)
    # ------------------------------------------------------------------

    def parent_id_of(self, kind: Kind, record_id: int) -> int | None:
        row = self.conn.execute(f"SELECT parent_id FROM {TABLES[kind]} WHERE id = ?", (record_id,)).fetchone()
        return row["parent_id"] if row else None

    def type_id_of(self, kind: Kind, record_id: int) -> int | None:
        field = {Kind.ACTOR: "actortype_id", Kind.MEASURE: "measuretype_id"}.get(kind)
        if field is None:
            return None
        row = self.conn.execute(f"SELECT {field} FROM {TABLES[kind]} WHERE id = ?", (record_id,)).fetchone()
        return row[field] if row else None

    def count(self, kind: Kind) -> int:
        return self.conn.execute(f"SELECT COUNT(*) FROM {TABLES[kind]}").fetchone()[0]

    def has_children(self, kind: Kind, record_id: int) -> bool:
        row = self.conn.execute(f"SELECT 1 FROM {TABLES[kind]} WHERE parent_id = ? LIMIT 1", (record_id,)).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Join rows
    # ------------------------------------------------------------------

    def get_link(self, kind: JoinKind, link_id: int) -> dict | None:
        spec = JOINS[kind]
        return _row(self.conn.execute(f"SELECT * FROM {spec.table} WHERE id = ?", (link_id,)).fetchone())

    def find_link(self, kind: JoinKind, left_id: int, right_id: int) -> dict | None:
        spec = JOINS[kind]
        row = self.conn.execute(
            f"SELECT * FROM {spec.table} WHERE {spec.left.column} = ? AND {spec.right.column} = ?",
            (left_id, right_id),
        ).fetchone()
        return _row(row)

    def links(self, kind: JoinKind, **filters) -> list[dict]:
        spec = JOINS[kind]
        where, params = _where(spec, filters)
        rows = self.conn.execute(f"SELECT * FROM {spec.table}{where} ORDER BY id", params).fetchall()
        return [dict(r) for r in rows]

    def insert_link(self, kind: JoinKind, values: dict, user_id: int | None = None) -> dict:
        spec = JOINS[kind]
        now = now_utc_iso()
        data = {k: v for k, v in values.items() if k in spec.columns}
        data.update(created_at=now, updated_at=now, created_by_id=user_id, updated_by_id=user_id)
        cols = ", ".join(data)
        marks = ", ".join("?" for _ in data)
        cursor = self.conn.execute(f"INSERT INTO {spec.table} ({cols}) VALUES ({marks})", tuple(data.values()))
        self._commit_if_idle()
        return self.get_link(kind, cursor.lastrowid)

    def update_link(self, kind: JoinKind, link_id: int, values: dict, user_id: int | None = None) -> dict | None:
        spec = JOINS[kind]
        data = {k: v for k, v in values.items() if k in spec.columns}
        data.update(updated_at=now_utc_iso(), updated_by_id=user_id)
        assignments = ", ".join(f"{col} = ?" for col in data)
        self.conn.execute(f"UPDATE {spec.table} SET {assignments} WHERE id = ?", (*data.values(), link_id))
        self._commit_if_idle()
        return self.get_link(kind, link_id)

    def delete_link(self, kind: JoinKind, link_id: int) -> bool:
        spec = JOINS[kind]
        cursor = self.conn.execute(f"DELETE FROM {spec.table} WHERE id = ?", (link_id,))
        self._commit_if_idle()
        return cursor.rowcount > 0

    def links_for(self, kind: Kind, record_id: int) -> list[tuple[JoinSpec, dict]]:
        """Every join row referencing the record, across all join kinds."""
        found = []
        for spec in JOINS.values():
            for side in spec.sides:
                if side.kind != kind:
                    continue
                rows = self.conn.execute(
                    f"SELECT * FROM {spec.table} WHERE {side.column} = ?",
                    (record_id,),
                ).fetchall()
                found.extend((spec, dict(r)) for r in rows)
        return found

    def assignee_ids(self, measure_id: int) -> list[int]:
        rows = self.conn.execute(
            "SELECT user_id FROM user_measures WHERE measure_id = ? ORDER BY user_id",
            (measure_id,),
        ).fetchall()
        return [r["user_id"] for r in rows]

    # ------------------------------------------------------------------
    # Indicator due dates
    # ------------------------------------------------------------------

    def due_dates(self, indicator_id: int) -> list[str]:
        rows = self.conn.execute(
            "SELECT due_date FROM indicator_due_dates WHERE indicator_id = ? ORDER BY due_date",
            (indicator_id,),
        ).fetchall()
        return [r["due_date"] for r in rows]

    def replace_due_dates(self, indicator_id: int, due_dates: Iterable) -> None:
        now = now_utc_iso()
        self.conn.execute("DELETE FROM indicator_due_dates WHERE indicator_id = ?", (indicator_id,))
        self.conn.executemany(
            "INSERT INTO indicator_due_dates (indicator_id, due_date, created_at) VALUES (?, ?, ?)",
            [(indicator_id, d.isoformat(), now) for d in due_dates],
        )
        self._commit_if_idle()

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def last_updated(self, kind: Kind, ids: Iterable[int] | None = None) -> tuple[str | None, int]:
        """(max updated_at, row count), optionally limited to some ids."""
        table = TABLES[kind]
        if ids is None:
            row = self.conn.execute(f"SELECT MAX(updated_at), COUNT(*) FROM {table}").fetchone()
            return row[0], row[1]
        ids = list(ids)
        if not ids:
            return None, 0
        marks = ", ".join("?" for _ in ids)
        row = self.conn.execute(
            f"SELECT MAX(updated_at), COUNT(*) FROM {table} WHERE id IN ({marks})",
            ids,
        ).fetchone()
        return row[0], row[1]


def _where(spec: JoinSpec, filters: dict) -> tuple[str, tuple]:
    clauses, params = [], []
    for column, value in filters.items():
        if column not in spec.columns and column != "id":
            raise ValueError(f"{spec.table} has no column {column}")
        clauses.append(f"{column} = ?")
        params.append(value)
    if not clauses:
        return "", ()
    return " WHERE " + " AND ".join(clauses), tuple(params)


def init_db(db_path: Path | str | None = None) -> Path:
    """Initialize database with schema. Safe to call multiple times."""
    path = Path(db_path or paths.db_path())
    path.parent.mkdir(parents=True, exist_ok=True)
    store = RecordStore(path)
    try:
        store.init_schema()
        store.conn.execute("PRAGMA journal_mode=WAL")
    finally:
        store.close()
    log.info(f"Database initialized at {path}")
    return path
