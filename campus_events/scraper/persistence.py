"""Idempotent per-record persistence of scraped events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from .error_codes import DuplicateKeyError, ErrorCode
from .extractor import EventRecord
from .logging_utils import _scraper_event
from .store import UpsertResult
from .utils import log_line, short_error_message


class UpsertTarget(Protocol):
    def upsert_event(self, record: EventRecord) -> UpsertResult: ...


@dataclass(frozen=True)
class PersistenceStats:
    new: int = 0
    updated: int = 0
    unchanged: int = 0
    duplicates: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.new + self.updated + self.unchanged + self.duplicates + self.errors


def persist_records(store: UpsertTarget, records: Iterable[EventRecord]) -> PersistenceStats:
    """Upsert each record on its own and tally the outcome classes.

    A duplicate-key race is counted separately and never treated as an error.
    Any other failure is logged and counted, and the remaining records are
    still written.
    """

    new = updated = unchanged = duplicates = errors = 0
    for record in records:
        try:
            result = store.upsert_event(record)
        except DuplicateKeyError as exc:
            duplicates += 1
            _scraper_event(
                "db",
                step="upsert_duplicate",
                source_url=record.source_url,
                error_code=ErrorCode.DUPLICATE_KEY,
                error=short_error_message(exc),
            )
            continue
        except Exception as exc:  # noqa: BLE001
            errors += 1
            log_line(f"[SCRAPER][ERROR][DB] Error saving event {record.source_url}: {exc}")
            _scraper_event(
                "error",
                phase="db",
                step="upsert_failed",
                source_url=record.source_url,
                error_code=ErrorCode.PERSISTENCE,
                error=short_error_message(exc),
            )
            continue

        if not result.matched:
            new += 1
        elif result.changed:
            updated += 1
        else:
            unchanged += 1

    stats = PersistenceStats(
        new=new,
        updated=updated,
        unchanged=unchanged,
        duplicates=duplicates,
        errors=errors,
    )
    log_line(
        f"[DB] Database update complete. New events: {new}, Updated events: {updated}, "
        f"Unchanged: {unchanged}, Errors: {errors}"
    )
    _scraper_event(
        "db",
        step="persist_summary",
        new=new,
        updated=updated,
        unchanged=unchanged,
        duplicates=duplicates,
        errors=errors,
    )
    return stats


__all__ = ["PersistenceStats", "persist_records", "UpsertTarget"]
