from __future__ import annotations

from typing import Optional

from . import config
from .error_codes import ErrorCode
from .logging_utils import _scraper_event

# Per-page faults that the pagination loop retries on the same page index.
RETRYABLE_ERROR_CODES = {
    ErrorCode.RENDER_TIMEOUT,
    ErrorCode.EXTRACTION,
    ErrorCode.NAVIGATION_TIMEOUT,
    ErrorCode.NAVIGATION,
}


def compute_backoff_seconds(
    attempt_index: int,
    base_seconds: float = 1.0,
    cap_seconds: float = config.RETRY_BACKOFF_CAP_SECONDS,
) -> float:
    """Return a capped exponential backoff for the given attempt (1-based)."""

    if base_seconds <= 0:
        return 0.0
    return float(min(base_seconds * 2 ** max(0, attempt_index - 1), cap_seconds))


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
    page_index: Optional[int] = None,
) -> bool:
    """Decide whether a failed page attempt should be retried.

    One counter covers every failure kind, so the only cap is
    ``attempt_index`` against ``max_attempts``; the error code only shapes the
    emitted event.
    """

    code = (error_code or "").strip()
    if attempt_index >= max_attempts:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="capped",
            attempt=attempt_index,
            max_attempts=max_attempts,
            error_code=code or None,
            page_index=page_index,
            will_retry=False,
        )
        return False

    if code in RETRYABLE_ERROR_CODES:
        kind = "retryable"
    else:
        kind = "unknown" if code else "missing_error_code"

    _scraper_event(
        "state",
        phase="retry_decision",
        kind=kind,
        attempt=attempt_index,
        max_attempts=max_attempts,
        error_code=code or None,
        page_index=page_index,
        will_retry=True,
        error_repr=repr(error) if error is not None else None,
    )
    return True


__all__ = ["decide_retry", "compute_backoff_seconds", "RETRYABLE_ERROR_CODES"]
