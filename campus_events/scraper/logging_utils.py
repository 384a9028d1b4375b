from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, Dict, Iterator

from .utils import log_line

# Fields stamped onto every structured event while a run is active. Each
# thread (and each request served by Flask) sees its own value.
_RUN_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("campus_events_run_context")


@contextmanager
def run_context(**fields: Any) -> Iterator[None]:
    """Attach ``fields`` (e.g. ``run_id``) to every event emitted in the block."""

    merged = dict(_RUN_CONTEXT.get({}))
    merged.update({key: value for key, value in fields.items() if value is not None})
    token = _RUN_CONTEXT.set(merged)
    try:
        yield
    finally:
        _RUN_CONTEXT.reset(token)


def _format_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return repr(value)


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit a structured ``[SCRAPER][LABEL] k=v`` log line.

    ``phase`` doubles as the label when no label is given; with both, it is
    kept in the payload. Fields from the active :func:`run_context` are added
    unless the caller already set them.
    """

    try:
        stage = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        for key, value in _RUN_CONTEXT.get({}).items():
            fields.setdefault(key, value)
        payload = ", ".join(f"{k}={_format_value(v)}" for k, v in sorted(fields.items()))
        log_line(f"[SCRAPER][{stage.upper()}] {payload}")
    except Exception:
        # Never let logging break the scraper.
        return


__all__ = ["_scraper_event", "run_context"]
