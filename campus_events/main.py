from __future__ import annotations

import os
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request, send_file

from campus_events.scraper.config import ScrapeSettings
from campus_events.scraper.error_codes import ConfigError, StoreConnectionError
from campus_events.scraper.export_excel import export_events_to_excel
from campus_events.scraper.healthcheck import run_health_checks
from campus_events.scraper.run import scrape_and_save_events
from campus_events.scraper.store import EventStore
from campus_events.scraper.utils import ensure_dirs, log_line

app = Flask(__name__)

# Storage paths are created on import so WSGI entrypoints have them ready.
ensure_dirs()

EVENTS_LIMIT_DEFAULT = 50
EVENTS_LIMIT_MAX = 500


def _request_payload() -> dict[str, Any]:
    payload: dict[str, Any] = {}
    payload.update(request.args or {})

    if request.is_json:
        payload.update(request.get_json(silent=True) or {})
    else:
        payload.update(request.form or {})

    return payload


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _open_store() -> EventStore:
    settings = ScrapeSettings.from_config()
    if not settings.store_uri:
        raise StoreConnectionError("EVENTS_DB_URI is not set")
    return EventStore.connect(
        settings.store_uri,
        connect_timeout=settings.store_connect_timeout,
        read_timeout=settings.store_read_timeout,
    )


@app.post("/api/scrape")
def api_scrape() -> Response:
    """Run a scrape synchronously and return its report."""

    payload = _request_payload()
    settings = ScrapeSettings.from_config(
        target_url=str(payload.get("url") or "").strip() or None,
        max_pages=_optional_int(payload.get("max_pages")),
        max_retries=_optional_int(payload.get("max_retries")),
    )

    try:
        report = scrape_and_save_events(settings, trigger="api")
    except ConfigError as exc:
        return jsonify({"success": False, "error": str(exc), "errorCode": exc.code}), 400

    return jsonify(report.to_dict()), 200 if report.success else 502


@app.get("/api/events")
def api_events() -> Response:
    """Return stored events, most recently updated first."""

    limit = _optional_int(request.args.get("limit"))
    if limit is None:
        limit = EVENTS_LIMIT_DEFAULT
    limit = max(1, min(limit, EVENTS_LIMIT_MAX))

    try:
        with _open_store() as store:
            events = store.list_events(limit=limit)
            total = store.count_events()
    except StoreConnectionError as exc:
        log_line(f"[API] /api/events store unavailable: {exc}")
        return jsonify({"ok": False, "error": "store unavailable"}), 503

    return jsonify({"ok": True, "total": total, "events": events})


@app.get("/api/runs/latest")
def api_runs_latest() -> Response:
    """Return the most recent run row."""

    try:
        with _open_store() as store:
            run = store.latest_run()
    except StoreConnectionError as exc:
        log_line(f"[API] /api/runs/latest store unavailable: {exc}")
        return jsonify({"ok": False, "error": "store unavailable"}), 503

    if run is None:
        return jsonify({"ok": False, "error": "no runs"}), 404

    payload: Dict[str, Any] = {"ok": True, "run": run}
    return jsonify(payload)


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem, and DB."""

    result = run_health_checks(entrypoint="api")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


@app.get("/api/exports/events.xlsx")
def api_export_events_xlsx() -> Response:
    try:
        with _open_store() as store:
            path = export_events_to_excel(store)
    except StoreConnectionError as exc:
        log_line(f"[API] export store unavailable: {exc}")
        return jsonify({"ok": False, "error": "store unavailable"}), 503
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))


if __name__ == "__main__":  # pragma: no cover
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
