"""Configuration constants for the campus events scraper."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

DATA_DIR: Path = Path(os.getenv("EVENTS_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
EXPORTS_DIR: Path = DATA_DIR / "exports"

DEFAULT_TARGET_URL: str = "https://events.cuny.edu/"
TARGET_URL: str = os.getenv("EVENTS_TARGET_URL", DEFAULT_TARGET_URL).strip() or DEFAULT_TARGET_URL

# Store connection target. Accepts ``sqlite:///path``, a ``file:`` URI or a
# plain filesystem path. Empty means unset and runs refuse to start.
STORE_URI: str = os.getenv("EVENTS_DB_URI", "").strip()

MAX_PAGES: int = int(os.getenv("EVENTS_MAX_PAGES", "5"))
MAX_RETRIES: int = int(os.getenv("EVENTS_MAX_RETRIES", "3"))

NOT_SPECIFIED: str = "Not specified"


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_delay_seconds(env_var: str, default: float) -> float:
    try:
        return float(os.getenv(env_var, str(default)))
    except ValueError:
        return default


# Playwright timeouts (seconds)
# Default per-operation timeout applied to the page itself.
PLAYWRIGHT_DEFAULT_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "EVENTS_DEFAULT_TIMEOUT_SECONDS", 60
)
# Initial page.goto for the listing.
PLAYWRIGHT_NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "EVENTS_NAV_TIMEOUT_SECONDS", 60
)
# Waiting for the listing container to render.
PLAYWRIGHT_PAGE_READY_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "EVENTS_PAGE_READY_TIMEOUT_SECONDS", 30
)

# Pause after a client-side page change so deferred rendering can finish.
POST_NAVIGATION_SETTLE_SECONDS: float = _parse_delay_seconds(
    "EVENTS_SETTLE_DELAY_SECONDS", 3.0
)
# Base for the capped exponential backoff between page retries.
RETRY_BACKOFF_SECONDS: float = _parse_delay_seconds("EVENTS_RETRY_BACKOFF_SECONDS", 1.0)
RETRY_BACKOFF_CAP_SECONDS: float = 30.0

# Store timeouts (seconds)
STORE_CONNECT_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "EVENTS_DB_CONNECT_TIMEOUT_SECONDS", 10
)
STORE_READ_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "EVENTS_DB_READ_TIMEOUT_SECONDS", 45
)

USER_AGENT: str = os.getenv(
    "EVENTS_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
)
HEADLESS: bool = os.getenv("EVENTS_HEADLESS", "true").strip().lower() != "false"
CHROMIUM_EXECUTABLE: Optional[str] = os.getenv("EVENTS_CHROMIUM_EXECUTABLE") or None


@dataclass(frozen=True)
class ScrapeSettings:
    """Options recognised by a single scrape invocation.

    ``from_config`` snapshots the module-level values so tests can
    monkeypatch either the module or pass explicit overrides.
    """

    target_url: str
    store_uri: str
    max_pages: int = 5
    max_retries: int = 3
    page_ready_timeout: float = 30.0
    navigation_timeout: float = 60.0
    post_navigation_settle_delay: float = 3.0
    retry_backoff_seconds: float = 1.0
    default_timeout: float = 60.0
    store_connect_timeout: float = 10.0
    store_read_timeout: float = 45.0
    user_agent: str = USER_AGENT
    headless: bool = True

    @classmethod
    def from_config(cls, **overrides: Any) -> "ScrapeSettings":
        settings = cls(
            target_url=TARGET_URL,
            store_uri=STORE_URI,
            max_pages=MAX_PAGES,
            max_retries=MAX_RETRIES,
            page_ready_timeout=float(PLAYWRIGHT_PAGE_READY_TIMEOUT_SECONDS),
            navigation_timeout=float(PLAYWRIGHT_NAV_TIMEOUT_SECONDS),
            post_navigation_settle_delay=POST_NAVIGATION_SETTLE_SECONDS,
            retry_backoff_seconds=RETRY_BACKOFF_SECONDS,
            default_timeout=float(PLAYWRIGHT_DEFAULT_TIMEOUT_SECONDS),
            store_connect_timeout=float(STORE_CONNECT_TIMEOUT_SECONDS),
            store_read_timeout=float(STORE_READ_TIMEOUT_SECONDS),
            user_agent=USER_AGENT,
            headless=HEADLESS,
        )
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        return replace(settings, **cleaned) if cleaned else settings


__all__ = ["ScrapeSettings", "NOT_SPECIFIED"]
