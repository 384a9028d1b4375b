"""Structural record extraction for the events listing.

The in-page script only reads raw text and links from each listing node. The
required-field gate and the sentinel backfill for optional fields happen here
in Python, so malformed nodes are filtered the same way whether the raw maps
come from a live browser or a test double.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Iterator, Mapping, Optional
from urllib.parse import urljoin, urlparse

from .config import NOT_SPECIFIED
from .logging_utils import _scraper_event
from .renderer import PageRenderer
from .selectors_listing import LISTING_SELECTORS, ListingSelectors
from .utils import clean_text, now_iso

LISTING_SCRIPT = """
(sel) => {
  const text = (el) => (el && el.innerText ? el.innerText.trim() : null);
  return Array.from(document.querySelectorAll(sel.container)).map((node) => {
    const titleEl = node.querySelector(sel.title_link);
    return {
      title: text(titleEl),
      organization: text(node.querySelector(sel.organization)),
      date: text(node.querySelector(sel.date)),
      time: text(node.querySelector(sel.time)),
      href: titleEl ? (titleEl.href || titleEl.getAttribute('href')) : null,
    };
  });
}
"""

# Columns compared when deciding whether a stored event changed.
CONTENT_FIELDS = ("title", "organization", "date", "time")


@dataclass(frozen=True)
class EventRecord:
    title: str
    organization: str
    date: str
    time: str
    source_url: str
    scraped_at: str

    def as_row(self) -> dict[str, str]:
        return asdict(self)


def resolve_link(href: Any, page_url: str) -> Optional[str]:
    """Return ``href`` as an absolute http(s) URL, or ``None``."""

    raw = clean_text(href)
    if not raw or raw.startswith("#") or raw.lower().startswith("javascript:"):
        return None
    absolute = urljoin(page_url or "", raw)
    parsed = urlparse(absolute)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return absolute


def build_record(raw: Mapping[str, Any], *, page_url: str, scraped_at: str) -> Optional[EventRecord]:
    """Turn one raw listing node into a record, or ``None`` when it is incomplete."""

    title = clean_text(raw.get("title"))
    date = clean_text(raw.get("date"))
    source_url = resolve_link(raw.get("href"), page_url)
    if not title or not date or not source_url:
        return None

    return EventRecord(
        title=title,
        organization=clean_text(raw.get("organization")) or NOT_SPECIFIED,
        date=date,
        time=clean_text(raw.get("time")) or NOT_SPECIFIED,
        source_url=source_url,
        scraped_at=scraped_at,
    )


class RecordExtractor:
    """Read the current listing page and yield complete records."""

    def __init__(
        self,
        selectors: ListingSelectors = LISTING_SELECTORS,
        *,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self.selectors = selectors
        self.clock = clock

    def extract(self, renderer: PageRenderer) -> Iterator[EventRecord]:
        """Yield one record per complete listing node on the current page.

        Placeholder and decorative nodes are skipped silently. A payload that
        is not a list means the page script itself broke and raises
        ``ValueError`` so the caller can treat it as a page fault.
        """

        payload = renderer.evaluate(LISTING_SCRIPT, self.selectors.as_script_arg())
        if not isinstance(payload, list):
            raise ValueError(f"listing script returned {type(payload).__name__}, expected list")

        page_url = renderer.current_url()
        scraped_at = self.clock()
        skipped = 0
        for raw in payload:
            record = build_record(raw, page_url=page_url, scraped_at=scraped_at) if isinstance(raw, Mapping) else None
            if record is None:
                skipped += 1
                continue
            yield record

        if skipped:
            _scraper_event(
                "extract",
                step="skipped_nodes",
                nodes=len(payload),
                skipped=skipped,
                page_url=page_url,
            )


__all__ = ["EventRecord", "RecordExtractor", "build_record", "resolve_link", "LISTING_SCRIPT", "CONTENT_FIELDS"]
