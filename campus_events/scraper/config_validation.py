from __future__ import annotations

from dataclasses import replace
from typing import Literal

from .config import ScrapeSettings
from .error_codes import ConfigError
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "api", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ConfigError(message)


def validate_runtime_config(entrypoint: Entrypoint, settings: ScrapeSettings) -> ScrapeSettings:
    """Validate scrape settings for the given entrypoint.

    Raises ``ConfigError`` (a ``ValueError``) when a blocking misconfiguration
    is detected. Non-fatal adjustments, such as clamping negative delays to
    zero, are logged and reflected in the returned settings.
    """

    if not (settings.store_uri or "").strip():
        _raise_config_error(
            "EVENTS_DB_URI is required to save scraped events.",
            entrypoint=entrypoint,
            error="store_uri_missing",
        )

    if not (settings.target_url or "").strip():
        _raise_config_error(
            "A target listing URL is required.",
            entrypoint=entrypoint,
            error="target_url_missing",
        )

    if settings.max_pages < 1:
        _raise_config_error(
            "max_pages must be at least 1.",
            entrypoint=entrypoint,
            error="max_pages_invalid",
        )

    if settings.max_retries < 1:
        _raise_config_error(
            "max_retries must be at least 1.",
            entrypoint=entrypoint,
            error="max_retries_invalid",
        )

    timeout_fields = [
        ("page_ready_timeout", settings.page_ready_timeout),
        ("navigation_timeout", settings.navigation_timeout),
        ("default_timeout", settings.default_timeout),
        ("store_connect_timeout", settings.store_connect_timeout),
        ("store_read_timeout", settings.store_read_timeout),
    ]
    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    adjustments = {}
    for field_name in ("post_navigation_settle_delay", "retry_backoff_seconds"):
        value = getattr(settings, field_name)
        if value < 0:
            adjustments[field_name] = 0.0
            _scraper_event(
                "state",
                phase="config",
                context="runtime_validation",
                kind="config_adjustment",
                field=field_name,
                value=value,
                adjusted=0.0,
                entrypoint=entrypoint,
            )
            log_line(f"[CONFIG] {field_name} < 0; clamping to 0.")

    return replace(settings, **adjustments) if adjustments else settings


__all__ = ["validate_runtime_config", "Entrypoint"]
