"""Dataset CSV export."""

from __future__ import annotations

from pathlib import Path

from solar_crawl.common.attributes import extract_installer_info
from solar_crawl.common.fs import write_csv
from solar_crawl.common.models import PointRecord

CSV_HEADERS = [
    "pointId",
    "id",
    "name",
    "countryId",
    "townId",
    "address",
    "longitude",
    "latitude",
    "categoryId",
    "seq",
    "installer_name",
    "status",
    "renewable_type",
    "equipment_type",
    "location_type",
    "capacity_kw",
]

_RECORD_COLUMNS = {
    "pointId": "pointId",
    "id": "id",
    "name": "name",
    "countryId": "countryId",
    "townId": "townId",
    "address": "address",
    "longitude": "x",
    "latitude": "y",
    "categoryId": "categoryId",
    "seq": "seq",
}


def _blank(value: object) -> object:
    return "" if value is None else value


def serialize_point(point: PointRecord) -> dict:
    info = extract_installer_info(point)
    row = {column: _blank(point.get(field)) for column, field in _RECORD_COLUMNS.items()}
    row["installer_name"] = _blank(info["installer_name"])
    row["status"] = _blank(info["status"])
    row["renewable_type"] = _blank(info["renewable_type"])
    row["equipment_type"] = _blank(info["equipment_type"])
    row["location_type"] = _blank(info["location_type"])
    row["capacity_kw"] = _blank(info["capacity"])
    return row


def write_points_csv(path: Path, points: list[PointRecord]) -> Path:
    write_csv(path, CSV_HEADERS, (serialize_point(point) for point in points))
    return path
