"""Dataset summary aggregation and run report."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from solar_crawl.common.attributes import extract_installer_info, parse_capacity
from solar_crawl.common.fs import write_json
from solar_crawl.common.logging import log_event
from solar_crawl.common.models import PointRecord

UNKNOWN = "Unknown"


def summarize_points(points: Iterable[PointRecord]) -> dict:
    status_counts: dict[str, int] = {}
    location_counts: dict[str, int] = {}
    total_capacity = 0.0
    with_capacity = 0
    total = 0

    for point in points:
        total += 1
        info = extract_installer_info(point)

        status = info["status"] or UNKNOWN
        status_counts[status] = status_counts.get(status, 0) + 1

        location_type = info["location_type"] or UNKNOWN
        location_counts[location_type] = location_counts.get(location_type, 0) + 1

        capacity = parse_capacity(info["capacity"])
        if capacity:
            total_capacity += capacity
            with_capacity += 1

    return {
        "total_installations": total,
        "by_status": status_counts,
        "by_location_type": location_counts,
        "capacity_kw": {
            "total": round(total_capacity, 2),
            "installations_with_capacity": with_capacity,
            "average": round(total_capacity / max(with_capacity, 1), 2),
        },
    }


def log_summary(logger: logging.Logger, summary: dict, *, run_id: str | None = None) -> None:
    capacity = summary["capacity_kw"]
    log_event(
        logger,
        (
            f"total solar installations: {summary['total_installations']}; "
            f"total capacity: {capacity['total']:,.2f} kW; "
            f"average capacity: {capacity['average']:,.2f} kW"
        ),
        run_id=run_id,
        stage="summary",
        event="SUMMARY",
        status="ok",
        total_points=summary["total_installations"],
    )
    for status, count in summary["by_status"].items():
        log_event(logger, f"status {status}: {count}", run_id=run_id, stage="summary", event="SUMMARY_STATUS")
    for location_type, count in summary["by_location_type"].items():
        log_event(
            logger,
            f"location type {location_type}: {count}",
            run_id=run_id,
            stage="summary",
            event="SUMMARY_LOCATION",
        )


def write_crawl_report(path: Path, *, run_id: str, mode: str, crawl: dict, summary: dict) -> Path:
    payload = {
        "run_id": run_id,
        "mode": mode,
        "status": "success",
        "crawl": crawl,
        "summary": summary,
    }
    write_json(path, payload)
    return path
