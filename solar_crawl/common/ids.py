"""Run identifier helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def generate_run_id(prefix: str = "crawl") -> str:
    now = datetime.now(tz=timezone.utc)
    # Lexically sortable so log lines from successive runs group naturally.
    return now.strftime(f"{prefix}-%Y%m%dT%H%M%S%fZ")
