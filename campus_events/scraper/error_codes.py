from __future__ import annotations

"""Centralised error code taxonomy for scraper failures.

These codes are stored on the ``runs`` row, returned on the RunReport and
included in structured logs so that we can explain why a run or a page
failed. The taxonomy should stay stable for reporting.
"""


class ErrorCode:
    CONFIG = "config_invalid"
    DB_CONNECTION = "db_connection_failed"
    BROWSER_LAUNCH = "browser_launch_failed"
    INITIAL_LOAD = "initial_load_failed"
    RENDER_TIMEOUT = "render_timeout"
    EXTRACTION = "extraction_error"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION = "navigation_error"
    DUPLICATE_KEY = "duplicate_key"
    PERSISTENCE = "persistence_error"
    INTERNAL = "internal_error"


class ScraperError(Exception):
    """Base class for errors raised by the scraper package."""

    code: str = ErrorCode.INTERNAL


class ConfigError(ScraperError, ValueError):
    code = ErrorCode.CONFIG


class StoreConnectionError(ScraperError):
    code = ErrorCode.DB_CONNECTION


class DuplicateKeyError(ScraperError):
    """Raised when a concurrent writer inserted the same natural key first."""

    code = ErrorCode.DUPLICATE_KEY


class RenderError(ScraperError):
    code = ErrorCode.NAVIGATION


class RenderTimeout(RenderError):
    code = ErrorCode.RENDER_TIMEOUT


__all__ = [
    "ErrorCode",
    "ScraperError",
    "ConfigError",
    "StoreConnectionError",
    "DuplicateKeyError",
    "RenderError",
    "RenderTimeout",
]
