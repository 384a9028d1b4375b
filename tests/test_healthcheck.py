from __future__ import annotations

from pathlib import Path

import pytest

from campus_events.scraper import config, healthcheck


def test_run_health_checks_happy_path(db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "STORE_URI", str(db_path))

    result = healthcheck.run_health_checks(entrypoint="tests")

    assert result.ok is True
    assert result.checks["config"]["ok"] is True
    assert result.checks["filesystem"]["ok"] is True
    assert result.checks["database"] == {"ok": True, "events": 0}


def test_run_health_checks_handles_invalid_config(db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "STORE_URI", str(db_path))
    monkeypatch.setattr(config, "PLAYWRIGHT_NAV_TIMEOUT_SECONDS", 0)

    result = healthcheck.run_health_checks(entrypoint="cli")

    assert result.ok is False
    assert result.checks["config"]["ok"] is False
    assert result.checks["database"]["ok"] is True


def test_run_health_checks_reports_unreachable_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "STORE_URI", str(tmp_path))

    result = healthcheck.run_health_checks(entrypoint="cli")

    assert result.ok is False
    assert result.checks["database"]["ok"] is False
    assert result.checks["database"]["error"]
