from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from . import config
from .config import ScrapeSettings
from .config_validation import Entrypoint, validate_runtime_config
from .logging_utils import _scraper_event
from .store import EventStore
from .utils import ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def run_health_checks(entrypoint: Entrypoint = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}
    settings = ScrapeSettings.from_config()

    try:
        validate_runtime_config(entrypoint, settings)
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    try:
        ensure_dirs()
        fs_ok = os.access(config.DATA_DIR, os.W_OK)
    except OSError:
        fs_ok = False
    checks["filesystem"] = {"ok": fs_ok, "data_dir": str(config.DATA_DIR)}

    if settings.store_uri:
        try:
            with EventStore.connect(
                settings.store_uri,
                connect_timeout=settings.store_connect_timeout,
                read_timeout=settings.store_read_timeout,
            ) as store:
                checks["database"] = {"ok": True, "events": store.count_events()}
        except Exception as exc:  # noqa: BLE001
            checks["database"] = {"ok": False, "error": str(exc)}
    else:
        checks["database"] = {"ok": False, "error": "EVENTS_DB_URI is not set"}

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
