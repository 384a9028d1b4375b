"""Selectors for the events listing page."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class ListingSelectors:
    """Structural selector hints for one known listing layout.

    Each event is an ``li.cec-list-item``. The title anchor carries the
    detail link; the two ``h4.low-normal`` headings hold the organization and
    the date in that order, and the one ``h4`` without that class holds the
    time. ``next_page`` excludes disabled controls and links back to page 1.
    """

    container: str = "li.cec-list-item"
    title_link: str = "h2.low a"
    organization: str = "h4.low-normal:nth-of-type(1)"
    date: str = "h4.low-normal:nth-of-type(2)"
    time: str = "h4:not(.low-normal)"
    next_page: str = '.pagination a[href*="page"]:not([href*="page/1"]):not(.disabled)'

    def as_script_arg(self) -> dict[str, str]:
        return asdict(self)


LISTING_SELECTORS = ListingSelectors()

__all__ = ["ListingSelectors", "LISTING_SELECTORS"]
