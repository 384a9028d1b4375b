"""Excel export of stored events."""

from __future__ import annotations

import os
import time
from typing import Optional

import pandas as pd

from . import config
from .store import EventStore

EVENT_COLUMNS = ["title", "organization", "date", "time", "source_url", "scraped_at", "updated_at"]
MAX_EXPORTS = int(os.environ.get("EXPORTS_KEEP_MAX", "5"))


def prune_old_exports() -> None:
    exports_dir = str(config.EXPORTS_DIR)
    files = sorted(
        [os.path.join(exports_dir, p) for p in os.listdir(exports_dir) if p.endswith(".xlsx")]
    )
    while len(files) > MAX_EXPORTS:
        old = files.pop(0)
        try:
            os.remove(old)
        except Exception:  # noqa: BLE001
            continue


def export_events_to_excel(store: EventStore, dest_path: Optional[str] = None) -> str:
    """Write every stored event plus a per-organization summary to a workbook."""

    events = store.list_events()
    df = pd.DataFrame(events, columns=EVENT_COLUMNS) if events else pd.DataFrame(columns=EVENT_COLUMNS)

    if df.empty:
        by_org = pd.DataFrame([{"info": "No events stored"}])
    else:
        by_org = (
            df.groupby("organization")
            .size()
            .reset_index(name="count")
            .sort_values("count", ascending=False)
        )

    os.makedirs(config.EXPORTS_DIR, exist_ok=True)
    if not dest_path:
        dest_path = os.path.join(
            str(config.EXPORTS_DIR), f"events_{time.strftime('%Y%m%d_%H%M%S')}.xlsx"
        )

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Events")
        by_org.to_excel(writer, index=False, sheet_name="Summary_Organization")

    prune_old_exports()
    return dest_path


__all__ = ["export_events_to_excel", "prune_old_exports"]
