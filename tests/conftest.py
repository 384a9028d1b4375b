from __future__ import annotations

from pathlib import Path

import pytest

from campus_events.scraper import config, utils


@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every data, log and export path at a per-test directory."""

    data_dir = tmp_path / "data"
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "EXPORTS_DIR", data_dir / "exports")
    monkeypatch.setattr(config, "STORE_URI", "")
    monkeypatch.setattr(utils, "_LOGGER_INITIALISED", False)
    return data_dir


@pytest.fixture
def db_path(temp_data_dir: Path) -> Path:
    return temp_data_dir / "events.db"
