"""Timestamp helpers for log records and dataset metadata."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def local_timestamp() -> str:
    """Wall-clock stamp in the ``YYYY-MM-DD HH:MM:SS`` form used by dataset files."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
