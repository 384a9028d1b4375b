"""Page-advance state machine for the events listing.

The controller drives ``LOADING -> EXTRACTING -> ADVANCING`` across listing
pages until the listing ends, the page budget is spent or the shared retry
budget runs out. All counters live on :class:`RunState` so a loop can be
started from any prepared state in tests.

Failures inside a page never escape :meth:`PaginationController.run`; the
caller always gets a :class:`PaginationResult` carrying whatever was
accumulated from successful pages.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .config import ScrapeSettings
from .error_codes import ErrorCode, RenderTimeout
from .extractor import EventRecord, RecordExtractor
from .logging_utils import _scraper_event
from .renderer import PageRenderer
from .retry_policy import compute_backoff_seconds, decide_retry
from .selectors_listing import LISTING_SELECTORS, ListingSelectors
from .utils import log_line, short_error_message

NAVIGATION_WAIT_UNTIL = "domcontentloaded"


class Phase(str, Enum):
    LOADING = "loading"
    EXTRACTING = "extracting"
    ADVANCING = "advancing"
    RETRYING = "retrying"
    DONE = "done"


class Outcome(str, Enum):
    SUCCESS = "success"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FAILED = "failed"


@dataclass
class RunState:
    page_index: int = 1
    retry_count: int = 0
    accumulated: List[EventRecord] = field(default_factory=list)
    phase: Phase = Phase.LOADING
    outcome: Optional[Outcome] = None
    failure_reason: Optional[str] = None
    last_error_code: Optional[str] = None
    last_error: Optional[BaseException] = None
    pages_extracted: int = 0
    # Phase a granted retry re-enters.
    resume_phase: Phase = Phase.LOADING


@dataclass(frozen=True)
class PaginationResult:
    outcome: Outcome
    records: List[EventRecord]
    pages_visited: int
    failure_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not Outcome.FAILED


class PaginationController:
    """Drive navigate, wait, extract and advance with bounded retries."""

    def __init__(
        self,
        renderer: PageRenderer,
        settings: ScrapeSettings,
        *,
        extractor: Optional[RecordExtractor] = None,
        selectors: ListingSelectors = LISTING_SELECTORS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.renderer = renderer
        self.settings = settings
        self.extractor = extractor or RecordExtractor(selectors)
        self.selectors = selectors
        self.sleep = sleep
        self._handlers = {
            Phase.LOADING: self._load,
            Phase.EXTRACTING: self._extract,
            Phase.ADVANCING: self._advance,
            Phase.RETRYING: self._retry,
        }

    def run(self, state: Optional[RunState] = None) -> PaginationResult:
        state = state if state is not None else RunState()
        while state.phase is not Phase.DONE:
            self._handlers[state.phase](state)

        records, state.accumulated = state.accumulated, []
        return PaginationResult(
            outcome=state.outcome or Outcome.FAILED,
            records=records,
            pages_visited=state.pages_extracted,
            failure_reason=state.failure_reason,
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _load(self, state: RunState) -> None:
        log_line(f"[PAGE] Scraping page {state.page_index}...")
        try:
            self.renderer.wait_for_selector(
                self.selectors.container, timeout=self.settings.page_ready_timeout
            )
        except Exception as exc:  # noqa: BLE001
            if isinstance(exc, RenderTimeout):
                code = ErrorCode.RENDER_TIMEOUT
            else:
                code = getattr(exc, "code", ErrorCode.INTERNAL)
            self._fail(state, exc, code=code, step="wait_for_listing")
            return
        state.phase = Phase.EXTRACTING

    def _extract(self, state: RunState) -> None:
        try:
            page_records = list(self.extractor.extract(self.renderer))
        except Exception as exc:  # noqa: BLE001
            self._fail(state, exc, code=ErrorCode.EXTRACTION, step="extract")
            return

        state.accumulated.extend(page_records)
        state.pages_extracted += 1
        state.retry_count = 0
        log_line(
            f"[PAGE] Found {len(page_records)} events on page {state.page_index}. "
            f"Total so far: {len(state.accumulated)}"
        )
        _scraper_event(
            "page",
            step="extracted",
            page_index=state.page_index,
            records=len(page_records),
            total=len(state.accumulated),
        )
        state.phase = Phase.ADVANCING

    def _advance(self, state: RunState) -> None:
        try:
            next_control = self.renderer.query_selector(self.selectors.next_page)
        except Exception as exc:  # noqa: BLE001
            self._fail(state, exc, code=ErrorCode.NAVIGATION, step="find_next", resume=Phase.ADVANCING)
            return

        if next_control is None:
            log_line(f"[PAGE] No next page after page {state.page_index}; end of listing.")
            self._finish(state, Outcome.SUCCESS)
            return

        if state.page_index >= self.settings.max_pages:
            log_line(
                f"[PAGE] Page budget of {self.settings.max_pages} reached; "
                "stopping with more pages available."
            )
            self._finish(state, Outcome.BUDGET_EXHAUSTED)
            return

        url_before: Optional[str] = None
        state.page_index += 1
        log_line(f"[PAGE] Navigating to page {state.page_index}...")
        try:
            url_before = self.renderer.current_url()
            self.renderer.click(next_control)
            self.renderer.wait_for_url_change(
                url_before,
                wait_until=NAVIGATION_WAIT_UNTIL,
                timeout=self.settings.navigation_timeout,
            )
        except Exception as exc:  # noqa: BLE001
            code = ErrorCode.NAVIGATION_TIMEOUT if isinstance(exc, RenderTimeout) else ErrorCode.NAVIGATION
            resume = self._navigation_resume_phase(state, url_before)
            self._fail(state, exc, code=code, step="navigate_next", resume=resume)
            return

        if self.settings.post_navigation_settle_delay > 0:
            self.sleep(self.settings.post_navigation_settle_delay)
        state.phase = Phase.LOADING

    def _retry(self, state: RunState) -> None:
        will_retry = decide_retry(
            state.retry_count,
            self.settings.max_retries,
            state.last_error,
            error_code=state.last_error_code,
            page_index=state.page_index,
        )
        if not will_retry:
            state.failure_reason = (
                f"Retry budget exhausted on page {state.page_index}: "
                f"{short_error_message(state.last_error) if state.last_error else state.last_error_code}"
            )
            log_line(f"[PAGE] {state.failure_reason}")
            self._finish(state, Outcome.FAILED)
            return

        log_line(
            f"[PAGE] Retrying page {state.page_index} "
            f"(attempt {state.retry_count + 1}/{self.settings.max_retries})"
        )
        delay = compute_backoff_seconds(state.retry_count, self.settings.retry_backoff_seconds)
        if delay > 0:
            self.sleep(delay)
        state.phase = state.resume_phase

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _navigation_resume_phase(self, state: RunState, url_before: Optional[str]) -> Phase:
        """Pick where to resume after a failed page change.

        If the browser left the previous page the new page is loaded again,
        otherwise the page counter is rolled back and the next control is
        clicked again so the previous page is not extracted twice.
        """

        url_after = url_before
        if url_before is not None:
            try:
                url_after = self.renderer.current_url()
            except Exception:  # noqa: BLE001
                url_after = url_before
        if url_after != url_before:
            return Phase.LOADING
        state.page_index -= 1
        return Phase.ADVANCING

    def _fail(
        self,
        state: RunState,
        exc: BaseException,
        *,
        code: str,
        step: str,
        resume: Phase = Phase.LOADING,
    ) -> None:
        state.retry_count += 1
        state.resume_phase = resume
        state.last_error = exc
        state.last_error_code = code
        log_line(f"[SCRAPER][ERROR][PAGE] {step} failed on page {state.page_index}: {exc}")
        _scraper_event(
            "error",
            phase="page",
            step=step,
            page_index=state.page_index,
            error_code=code,
            retry_count=state.retry_count,
            error=short_error_message(exc),
        )
        state.phase = Phase.RETRYING

    def _finish(self, state: RunState, outcome: Outcome) -> None:
        state.outcome = outcome
        state.phase = Phase.DONE
        _scraper_event(
            "state",
            phase="pagination",
            kind="done",
            outcome=outcome.value,
            page_index=state.page_index,
            pages_extracted=state.pages_extracted,
            total=len(state.accumulated),
        )


__all__ = ["Phase", "Outcome", "RunState", "PaginationResult", "PaginationController"]
