from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from campus_events.scraper.error_codes import DuplicateKeyError, StoreConnectionError
from campus_events.scraper.extractor import EventRecord
from campus_events.scraper.store import EventStore, StoreTarget, parse_store_target


def _record(key: str = "a", **overrides: str) -> EventRecord:
    fields = dict(
        title=f"Event {key}",
        organization="Hunter College",
        date="Tue, Mar 5",
        time="1:00 PM",
        source_url=f"https://events.example.edu/event/{key}",
        scraped_at="2024-03-01T00:00:00Z",
    )
    fields.update(overrides)
    return EventRecord(**fields)


class _EmptyCursor:
    def fetchone(self):
        return None


class _StaleReadConnection:
    """Wrap a connection so key lookups miss, as if another writer raced us."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def __enter__(self):
        return self._conn.__enter__()

    def __exit__(self, *exc_info):
        return self._conn.__exit__(*exc_info)

    def execute(self, sql: str, params=()):
        if sql.lstrip().upper().startswith("SELECT"):
            return _EmptyCursor()
        return self._conn.execute(sql, params)

    def close(self) -> None:
        self._conn.close()


@pytest.mark.parametrize(
    "target, expected",
    [
        ("sqlite:///events.db", StoreTarget("events.db")),
        ("sqlite:////var/data/events.db", StoreTarget("/var/data/events.db")),
        ("sqlite://", StoreTarget(":memory:")),
        ("file:events.db?mode=ro", StoreTarget("file:events.db?mode=ro", uri=True)),
        ("  /tmp/events.db ", StoreTarget("/tmp/events.db")),
    ],
)
def test_parse_store_target(target: str, expected: StoreTarget) -> None:
    assert parse_store_target(target) == expected


@pytest.mark.parametrize("target", ["", "   ", "sqlite://db.example.com/events"])
def test_parse_store_target_rejects(target: str) -> None:
    with pytest.raises(StoreConnectionError):
        parse_store_target(target)


def test_connect_creates_schema_and_parent_dirs(tmp_path: Path) -> None:
    db_file = tmp_path / "nested" / "events.db"

    with EventStore.connect(str(db_file)) as store:
        tables = {
            row["name"]
            for row in store.conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert {"events", "runs"} <= tables
        assert store.count_events() == 0

    assert db_file.exists()
    assert store.closed


def test_connect_to_a_directory_fails(tmp_path: Path) -> None:
    with pytest.raises(StoreConnectionError):
        EventStore.connect(str(tmp_path))


def test_connect_to_a_non_database_file_fails(tmp_path: Path) -> None:
    bogus = tmp_path / "not-a-db.db"
    bogus.write_bytes(b"this is definitely not sqlite" * 100)

    with pytest.raises(StoreConnectionError):
        EventStore.connect(str(bogus))


def test_closed_store_refuses_queries(db_path: Path) -> None:
    store = EventStore.connect(str(db_path))
    store.close()
    store.close()

    with pytest.raises(StoreConnectionError):
        store.count_events()


def test_upsert_classifies_new_unchanged_updated(db_path: Path) -> None:
    with EventStore.connect(f"sqlite:///{db_path}") as store:
        first = store.upsert_event(_record())
        again = store.upsert_event(_record(scraped_at="2024-03-02T00:00:00Z"))
        changed = store.upsert_event(_record(date="Wed, Mar 6"))

        assert (first.matched, first.changed) == (False, True)
        assert (again.matched, again.changed) == (True, False)
        assert (changed.matched, changed.changed) == (True, True)
        assert store.count_events() == 1
        assert store.get_event(_record().source_url)["date"] == "Wed, Mar 6"


def test_unchanged_upsert_writes_nothing(db_path: Path) -> None:
    with EventStore.connect(str(db_path)) as store:
        store.upsert_event(_record())
        before = dict(store.get_event(_record().source_url))

        store.upsert_event(_record(scraped_at="2030-01-01T00:00:00Z"))

        assert dict(store.get_event(_record().source_url)) == before


def test_optional_field_change_counts_as_update(db_path: Path) -> None:
    with EventStore.connect(str(db_path)) as store:
        store.upsert_event(_record(organization="Not specified"))
        result = store.upsert_event(_record(organization="Queens College"))

        assert result.changed is True
        assert store.get_event(_record().source_url)["organization"] == "Queens College"


def test_key_uniqueness_across_repeated_upserts(db_path: Path) -> None:
    with EventStore.connect(str(db_path)) as store:
        for title in ("One", "Two", "Three", "Two"):
            store.upsert_event(_record(title=title))
        store.upsert_event(_record("b"))

        assert store.count_events() == 2


def test_insert_race_raises_duplicate_key(db_path: Path) -> None:
    store = EventStore.connect(str(db_path))
    store.upsert_event(_record())
    store._conn = _StaleReadConnection(store.conn)

    with pytest.raises(DuplicateKeyError):
        store.upsert_event(_record(title="Racing"))

    store.close()
    with EventStore.connect(str(db_path)) as reopened:
        assert reopened.count_events() == 1
        assert reopened.get_event(_record().source_url)["title"] == "Event a"


def test_list_events_orders_and_limits(db_path: Path) -> None:
    with EventStore.connect(str(db_path)) as store:
        for key in ("a", "b", "c"):
            store.upsert_event(_record(key))

        events = store.list_events(limit=2)

        assert [e["source_url"].rsplit("/", 1)[-1] for e in events] == ["c", "b"]
        assert len(store.list_events()) == 3


def test_run_rows_round_trip(db_path: Path) -> None:
    with EventStore.connect(str(db_path)) as store:
        assert store.latest_run() is None
        run_id = store.create_run(trigger="tests", target_url="https://x.test/", params_json="{}")
        store.finish_run(
            run_id,
            status="completed",
            outcome="success",
            pages_visited=2,
            total_found=4,
            new_events=4,
            updated_events=0,
            errors=0,
        )

        run = store.latest_run()

    assert run is not None
    assert run["id"] == run_id
    assert run["status"] == "completed"
    assert run["pages_visited"] == 2
    assert run["ended_at"]
