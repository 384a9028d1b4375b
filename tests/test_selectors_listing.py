from __future__ import annotations

from campus_events.scraper import selectors_listing


def test_listing_selectors_defaults() -> None:
    selectors = selectors_listing.LISTING_SELECTORS

    assert selectors.container == "li.cec-list-item"
    assert selectors.title_link == "h2.low a"
    assert selectors.organization.endswith("nth-of-type(1)")
    assert selectors.date.endswith("nth-of-type(2)")
    assert ":not(.disabled)" in selectors.next_page
    assert ':not([href*="page/1"])' in selectors.next_page


def test_selectors_passed_to_the_page_script() -> None:
    arg = selectors_listing.ListingSelectors(container="div.event").as_script_arg()

    assert arg["container"] == "div.event"
    assert set(arg) == {"container", "title_link", "organization", "date", "time", "next_page"}
