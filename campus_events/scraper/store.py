"""SQLite store for scraped events and run history.

This module owns the connection target parsing, connection helper, schema
initialisation and the per-event upsert keyed on ``source_url``. Callers hold
one :class:`EventStore` per run and must close it; it is also a context
manager.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple
from urllib.parse import unquote, urlparse

from .error_codes import DuplicateKeyError, StoreConnectionError
from .extractor import CONTENT_FIELDS, EventRecord
from .logging_utils import _scraper_event
from .utils import now_iso

SCHEMA_STATEMENTS: Tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS events (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        source_url      TEXT NOT NULL UNIQUE,
        title           TEXT NOT NULL,
        organization    TEXT NOT NULL,
        date            TEXT NOT NULL,
        time            TEXT NOT NULL,
        scraped_at      TEXT NOT NULL,
        created_at      TEXT NOT NULL,
        updated_at      TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS runs (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        started_at      TEXT NOT NULL,
        ended_at        TEXT,
        trigger         TEXT NOT NULL,
        target_url      TEXT NOT NULL,
        params_json     TEXT NOT NULL,
        status          TEXT NOT NULL,
        outcome         TEXT,
        pages_visited   INTEGER,
        total_found     INTEGER,
        new_events      INTEGER,
        updated_events  INTEGER,
        errors          INTEGER,
        error_code      TEXT,
        error_summary   TEXT
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_runs_started_at
        ON runs(started_at DESC);
    """,
)


@dataclass(frozen=True)
class UpsertResult:
    matched: bool
    changed: bool


@dataclass(frozen=True)
class StoreTarget:
    database: str
    uri: bool = False

    @property
    def path(self) -> Optional[Path]:
        if self.uri or self.database == ":memory:":
            return None
        return Path(self.database)


def parse_store_target(target: str) -> StoreTarget:
    """Interpret a store connection target string.

    ``sqlite:///relative.db`` and ``sqlite:////abs/path.db`` follow the usual
    SQLAlchemy-style URL convention; ``file:`` URIs are passed through to
    SQLite; anything else is treated as a filesystem path.
    """

    raw = (target or "").strip()
    if not raw:
        raise StoreConnectionError("store target is empty")

    if raw.startswith("sqlite:"):
        parsed = urlparse(raw)
        database = unquote(parsed.path[1:] if parsed.path.startswith("/") else parsed.path)
        if parsed.netloc:
            raise StoreConnectionError(f"unsupported sqlite URL host: {parsed.netloc!r}")
        return StoreTarget(database=database or ":memory:")

    if raw.startswith("file:"):
        return StoreTarget(database=raw, uri=True)

    return StoreTarget(database=raw)


class EventStore:
    def __init__(self, conn: sqlite3.Connection, target: StoreTarget) -> None:
        self._conn: Optional[sqlite3.Connection] = conn
        self.target = target

    @classmethod
    def connect(
        cls,
        target: str,
        *,
        connect_timeout: float = 10.0,
        read_timeout: float = 45.0,
    ) -> "EventStore":
        """Open the store and make sure the schema exists.

        Raises :class:`StoreConnectionError` for any failure to reach a usable
        database, including files that are not SQLite databases.
        """

        parsed = parse_store_target(target)
        try:
            if parsed.path is not None:
                parsed.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                parsed.database,
                timeout=connect_timeout,
                uri=parsed.uri,
                check_same_thread=False,
            )
        except (sqlite3.Error, OSError) as exc:
            raise StoreConnectionError(f"cannot open store {target!r}: {exc}") from exc

        conn.row_factory = sqlite3.Row
        store = cls(conn, parsed)
        try:
            conn.execute(f"PRAGMA busy_timeout = {int(max(0.0, read_timeout) * 1000)}")
            store.initialize_schema()
        except sqlite3.Error as exc:
            store.close()
            raise StoreConnectionError(f"cannot initialise store {target!r}: {exc}") from exc

        _scraper_event("db", step="connected", database=parsed.database)
        return store

    def __enter__(self) -> "EventStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreConnectionError("store is closed")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def initialize_schema(self) -> None:
        """Create the baseline tables if they do not yet exist."""

        with self.conn:
            for statement in SCHEMA_STATEMENTS:
                self.conn.execute(statement)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def upsert_event(self, record: EventRecord) -> UpsertResult:
        """Insert or overwrite the event stored under ``record.source_url``.

        Nothing is written when the stored content fields already match, so
        repeating an identical upsert leaves the row untouched. A UNIQUE
        violation on insert means another writer got there first and is
        raised as :class:`DuplicateKeyError`.
        """

        conn = self.conn
        with conn:
            existing = conn.execute(
                "SELECT title, organization, date, time FROM events WHERE source_url = ?",
                (record.source_url,),
            ).fetchone()

            now = now_iso()
            if existing is None:
                try:
                    conn.execute(
                        """
                        INSERT INTO events (
                            source_url, title, organization, date, time,
                            scraped_at, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            record.source_url,
                            record.title,
                            record.organization,
                            record.date,
                            record.time,
                            record.scraped_at,
                            now,
                            now,
                        ),
                    )
                except sqlite3.IntegrityError as exc:
                    if "UNIQUE" not in str(exc).upper():
                        raise
                    raise DuplicateKeyError(f"duplicate source_url {record.source_url!r}") from exc
                return UpsertResult(matched=False, changed=True)

            changed = any(existing[name] != getattr(record, name) for name in CONTENT_FIELDS)
            if not changed:
                return UpsertResult(matched=True, changed=False)

            conn.execute(
                """
                UPDATE events
                SET title = ?, organization = ?, date = ?, time = ?,
                    scraped_at = ?, updated_at = ?
                WHERE source_url = ?
                """,
                (
                    record.title,
                    record.organization,
                    record.date,
                    record.time,
                    record.scraped_at,
                    now,
                    record.source_url,
                ),
            )
        return UpsertResult(matched=True, changed=True)

    def count_events(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM events").fetchone()
        return int(row["n"])

    def get_event(self, source_url: str) -> Optional[sqlite3.Row]:
        return self.conn.execute(
            "SELECT * FROM events WHERE source_url = ?", (source_url,)
        ).fetchone()

    def list_events(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Return stored events, most recently updated first."""

        sql = "SELECT * FROM events ORDER BY updated_at DESC, id DESC"
        params: Iterable[Any] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (max(0, int(limit)),)
        return [dict(row) for row in self.conn.execute(sql, tuple(params)).fetchall()]

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def create_run(self, *, trigger: str, target_url: str, params_json: str) -> int:
        """Insert a row into ``runs`` with status ``running`` and return its id."""

        with self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO runs (started_at, trigger, target_url, params_json, status)
                VALUES (?, ?, ?, ?, 'running')
                """,
                (now_iso(), trigger, target_url, params_json),
            )
        return int(cursor.lastrowid)

    def finish_run(
        self,
        run_id: int,
        *,
        status: str,
        outcome: Optional[str] = None,
        pages_visited: Optional[int] = None,
        total_found: Optional[int] = None,
        new_events: Optional[int] = None,
        updated_events: Optional[int] = None,
        errors: Optional[int] = None,
        error_code: Optional[str] = None,
        error_summary: Optional[str] = None,
    ) -> None:
        with self.conn:
            self.conn.execute(
                """
                UPDATE runs
                SET status = ?, ended_at = ?, outcome = ?, pages_visited = ?,
                    total_found = ?, new_events = ?, updated_events = ?,
                    errors = ?, error_code = ?, error_summary = ?
                WHERE id = ?
                """,
                (
                    status,
                    now_iso(),
                    outcome,
                    pages_visited,
                    total_found,
                    new_events,
                    updated_events,
                    errors,
                    error_code,
                    error_summary,
                    run_id,
                ),
            )

    def latest_run(self) -> Optional[dict[str, Any]]:
        row = self.conn.execute("SELECT * FROM runs ORDER BY id DESC LIMIT 1").fetchone()
        return dict(row) if row else None


__all__ = ["EventStore", "UpsertResult", "StoreTarget", "parse_store_target"]
