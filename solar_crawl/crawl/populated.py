"""Infer which grid cells already hold data from a previous GeoJSON export."""

from __future__ import annotations

import json
import logging
import math
from collections import Counter
from pathlib import Path
from typing import Any, Iterable

from solar_crawl.common.fs import read_json
from solar_crawl.common.geometry import extract_feature_lng_lat
from solar_crawl.common.logging import log_event
from solar_crawl.common.models import GridCell, Region
from solar_crawl.crawl.grid import COORD_PRECISION

CellKey = tuple[float, float]


def cell_key_for(lat: float, lng: float, regions: Iterable[Region], spacing: float) -> CellKey | None:
    """Cell containing ``(lat, lng)`` in the first region whose bounds hold it."""
    for region in regions:
        if not region.contains(lat, lng):
            continue
        cell_lat = math.floor((lat - region.min_lat) / spacing) * spacing + region.min_lat
        cell_lng = math.floor((lng - region.min_lng) / spacing) * spacing + region.min_lng
        return (round(cell_lat, COORD_PRECISION), round(cell_lng, COORD_PRECISION))
    return None


def count_points_by_cell(feature_collection: Any, regions: list[Region], spacing: float) -> Counter:
    counts: Counter = Counter()
    if not isinstance(feature_collection, dict):
        return counts
    features = feature_collection.get("features")
    if not isinstance(features, list):
        return counts

    for feature in features:
        lng, lat = extract_feature_lng_lat(feature)
        if lng is None or lat is None:
            continue
        key = cell_key_for(lat, lng, regions, spacing)
        if key is not None:
            counts[key] += 1
    return counts


def locate(feature_collection: Any, regions: list[Region], spacing: float) -> set[CellKey]:
    return set(count_points_by_cell(feature_collection, regions, spacing))


def filter_cells(cells: Iterable[GridCell], populated: set[CellKey]) -> list[GridCell]:
    return [cell for cell in cells if cell.key in populated]


class PopulatedCellLocator:
    def __init__(self, regions: list[Region], spacing: float, logger: logging.Logger | None = None) -> None:
        self.regions = regions
        self.spacing = spacing
        self.logger = logger or logging.getLogger(__name__)

    def _read_export(self, path: Path) -> dict | None:
        if not path.exists():
            log_event(
                self.logger,
                f"no previous GeoJSON export at {path}",
                stage="filter",
                event="UPDATE_EXPORT_MISSING",
                status="skipped",
            )
            return None
        try:
            payload = read_json(path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            payload = None
        if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
            log_event(
                self.logger,
                f"previous GeoJSON export at {path} is not a FeatureCollection",
                level=logging.WARNING,
                stage="filter",
                event="UPDATE_EXPORT_INVALID",
                status="error",
            )
            return None
        return payload

    def locate_from_file(self, path: Path, *, top: int = 5) -> set[CellKey]:
        payload = self._read_export(path)
        if payload is None:
            return set()

        counts = count_points_by_cell(payload, self.regions, self.spacing)
        log_event(
            self.logger,
            f"found {len(counts)} populated grid cells",
            stage="filter",
            event="UPDATE_CELLS_FOUND",
            status="ok",
            cell_count=len(counts),
        )
        for (lat, lng), installations in counts.most_common(top):
            log_event(
                self.logger,
                f"grid {lat},{lng}: {installations} installations",
                stage="filter",
                event="UPDATE_TOP_CELL",
                status="ok",
                lat=lat,
                lng=lng,
                points_in=installations,
            )
        return set(counts)
