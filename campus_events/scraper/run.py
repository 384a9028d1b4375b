"""Run coordinator for the campus events scraper.

Workflow:

- Validate settings (the store target is mandatory).
- Open the SQLite store; if that fails nothing else is started.
- Launch Chromium through Playwright, load the listing and wait for the
  first ``li.cec-list-item`` outside the pagination retry loop.
- Hand the page to :class:`PaginationController`, then upsert everything it
  accumulated through :func:`persist_records`.
- Close the browser and the store on every exit path and return a
  :class:`RunReport`.

This is wired to ``POST /api/scrape`` and to the CLI below.
"""

from __future__ import annotations

import argparse
import json
import time
from contextlib import ExitStack
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config
from .config import ScrapeSettings
from .config_validation import Entrypoint, validate_runtime_config
from .error_codes import ConfigError, ErrorCode
from .extractor import RecordExtractor
from .logging_utils import _scraper_event, run_context
from .pagination import NAVIGATION_WAIT_UNTIL, PaginationController
from .persistence import PersistenceStats, persist_records
from .renderer import PageRenderer, PlaywrightRenderer
from .selectors_listing import LISTING_SELECTORS
from .store import EventStore
from .utils import log_line, setup_run_logger, short_error_message

DB_CONNECTION_FAILED = "Database connection failed"
BROWSER_LAUNCH_FAILED = "Failed to launch browser"
PAGE_LOAD_FAILED = "Failed to load page"
UNEXPECTED_FAILURE = "Scrape failed unexpectedly"

StoreFactory = Callable[[ScrapeSettings], EventStore]
RendererFactory = Callable[[ScrapeSettings], PageRenderer]


@dataclass(frozen=True)
class RunStats:
    total_found: int
    new_events: int
    updated_events: int
    errors: int
    unchanged_events: int = 0
    duplicate_events: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalFound": self.total_found,
            "newEvents": self.new_events,
            "updatedEvents": self.updated_events,
            "errors": self.errors,
            "unchangedEvents": self.unchanged_events,
            "duplicateEvents": self.duplicate_events,
        }


@dataclass(frozen=True)
class RunReport:
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    stats: Optional[RunStats] = None
    outcome: Optional[str] = None
    pages_visited: int = 0
    failure_reason: Optional[str] = None
    run_id: Optional[int] = None
    log_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
            payload["errorCode"] = self.error_code
        if self.stats is not None:
            payload["stats"] = self.stats.to_dict()
        if self.outcome is not None:
            payload["outcome"] = self.outcome
            payload["pagesVisited"] = self.pages_visited
        if self.failure_reason:
            payload["failureReason"] = self.failure_reason
        if self.run_id is not None:
            payload["runId"] = self.run_id
        if self.log_file:
            payload["logFile"] = self.log_file
        return payload


def _open_store(settings: ScrapeSettings) -> EventStore:
    return EventStore.connect(
        settings.store_uri,
        connect_timeout=settings.store_connect_timeout,
        read_timeout=settings.store_read_timeout,
    )


def _open_renderer(settings: ScrapeSettings) -> PageRenderer:
    renderer = PlaywrightRenderer(
        user_agent=settings.user_agent,
        default_timeout=settings.default_timeout,
        headless=settings.headless,
        executable_path=config.CHROMIUM_EXECUTABLE,
    )
    return renderer.open()


def _close_quietly(resource: Any, label: str) -> None:
    try:
        resource.close()
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN] Failed to close {label}: {exc}")


def _settings_params_json(settings: ScrapeSettings) -> str:
    params = asdict(settings)
    params.pop("store_uri", None)
    params.pop("user_agent", None)
    return json.dumps(params, sort_keys=True)


def _start_run(store: EventStore, settings: ScrapeSettings, trigger: str) -> Optional[int]:
    try:
        return store.create_run(
            trigger=trigger,
            target_url=settings.target_url,
            params_json=_settings_params_json(settings),
        )
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN] Could not record run start: {exc}")
        return None


def _finish_run(store: EventStore, run_id: Optional[int], report: RunReport) -> None:
    if run_id is None:
        return
    stats = report.stats
    try:
        store.finish_run(
            run_id,
            status="completed" if report.success else "failed",
            outcome=report.outcome,
            pages_visited=report.pages_visited,
            total_found=stats.total_found if stats else None,
            new_events=stats.new_events if stats else None,
            updated_events=stats.updated_events if stats else None,
            errors=stats.errors if stats else None,
            error_code=report.error_code,
            error_summary=report.error or report.failure_reason,
        )
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN] Could not record run end for run {run_id}: {exc}")


def _failed(
    message: str,
    code: str,
    exc: BaseException,
    *,
    run_id: Optional[int],
    log_path: Path,
) -> RunReport:
    log_line(f"[SCRAPER][ERROR][RUN] {message}: {exc}")
    _scraper_event(
        "error",
        phase="run",
        error_code=code,
        run_id=run_id,
        error=short_error_message(exc),
    )
    return RunReport(
        success=False,
        error=message,
        error_code=code,
        run_id=run_id,
        log_file=str(log_path),
    )


def scrape_and_save_events(
    settings: Optional[ScrapeSettings] = None,
    *,
    trigger: Entrypoint = "cli",
    store_factory: Optional[StoreFactory] = None,
    renderer_factory: Optional[RendererFactory] = None,
    extractor: Optional[RecordExtractor] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunReport:
    """Scrape the listing, persist what was found and report on it.

    Raises ``ConfigError`` only for invalid settings. Every other failure is
    returned as a RunReport with ``success=False``.
    """

    settings = validate_runtime_config(trigger, settings or ScrapeSettings.from_config())
    store_factory = store_factory or _open_store
    renderer_factory = renderer_factory or _open_renderer

    log_path = setup_run_logger()
    log_line(f"[RUN] Starting events scrape of {settings.target_url} (trigger={trigger})")

    with ExitStack() as stack:
        log_line("[DB] Connecting to store...")
        try:
            store = store_factory(settings)
        except Exception as exc:  # noqa: BLE001
            return _failed(DB_CONNECTION_FAILED, ErrorCode.DB_CONNECTION, exc, run_id=None, log_path=log_path)
        stack.callback(_close_quietly, store, "store")
        log_line("[DB] Store connected.")

        run_id = _start_run(store, settings, trigger)
        stack.enter_context(run_context(run_id=run_id, trigger=trigger))

        log_line("[RUN] Launching headless browser...")
        try:
            renderer = renderer_factory(settings)
        except Exception as exc:  # noqa: BLE001
            report = _failed(BROWSER_LAUNCH_FAILED, ErrorCode.BROWSER_LAUNCH, exc, run_id=run_id, log_path=log_path)
            _finish_run(store, run_id, report)
            return report
        stack.callback(_close_quietly, renderer, "browser")

        log_line(f"[RUN] Navigating to {settings.target_url}...")
        try:
            renderer.navigate(
                settings.target_url,
                wait_until=NAVIGATION_WAIT_UNTIL,
                timeout=settings.navigation_timeout,
            )
            renderer.wait_for_selector(
                LISTING_SELECTORS.container, timeout=settings.page_ready_timeout
            )
        except Exception as exc:  # noqa: BLE001
            report = _failed(PAGE_LOAD_FAILED, ErrorCode.INITIAL_LOAD, exc, run_id=run_id, log_path=log_path)
            _finish_run(store, run_id, report)
            return report

        try:
            controller = PaginationController(renderer, settings, extractor=extractor, sleep=sleep)
            result = controller.run()
            if result.records:
                log_line(f"[DB] Saving {len(result.records)} events to database...")
                persisted = persist_records(store, result.records)
            else:
                persisted = PersistenceStats()
        except Exception as exc:  # noqa: BLE001
            report = _failed(UNEXPECTED_FAILURE, ErrorCode.INTERNAL, exc, run_id=run_id, log_path=log_path)
            _finish_run(store, run_id, report)
            return report

        report = RunReport(
            success=True,
            stats=RunStats(
                total_found=len(result.records),
                new_events=persisted.new,
                updated_events=persisted.updated,
                errors=persisted.errors,
                unchanged_events=persisted.unchanged,
                duplicate_events=persisted.duplicates,
            ),
            outcome=result.outcome.value,
            pages_visited=result.pages_visited,
            failure_reason=result.failure_reason,
            run_id=run_id,
            log_file=str(log_path),
        )
        _finish_run(store, run_id, report)

    log_line("[RUN] Scraper finished and disconnected from store.")
    _scraper_event(
        "state",
        phase="run",
        kind="summary",
        run_id=report.run_id,
        outcome=report.outcome,
        pages_visited=report.pages_visited,
        **(report.stats.to_dict() if report.stats else {}),
    )
    return report


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape the events listing into the store")
    parser.add_argument("--url", dest="target_url", default=None, help="Listing URL to start from.")
    parser.add_argument("--db", dest="store_uri", default=None, help="Store target (sqlite URL or path).")
    parser.add_argument("--max-pages", type=int, default=None)
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument(
        "--settle-delay",
        dest="post_navigation_settle_delay",
        type=float,
        default=None,
        help="Seconds to wait after each page change.",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window.")
    return parser


def _cli_entrypoint(argv: Optional[List[str]] = None) -> int:  # pragma: no cover
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = ScrapeSettings.from_config(
        target_url=args.target_url,
        store_uri=args.store_uri,
        max_pages=args.max_pages,
        max_retries=args.max_retries,
        post_navigation_settle_delay=args.post_navigation_settle_delay,
        headless=False if args.headed else None,
    )
    try:
        report = scrape_and_save_events(settings, trigger="cli")
    except ConfigError as exc:
        parser.error(str(exc))

    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.success else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(_cli_entrypoint())

__all__ = ["RunReport", "RunStats", "scrape_and_save_events", "_cli_entrypoint"]
