"""Geometry helpers."""

from __future__ import annotations

import math
from typing import Any


def _safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def extract_point_lng_lat(point: dict[str, Any]) -> tuple[float | None, float | None]:
    """Read ``x``/``y`` from a raw point record; zero is treated as missing."""
    lng = _safe_float(point.get("x"))
    lat = _safe_float(point.get("y"))
    if not lng or not lat:
        return None, None
    return lng, lat


def extract_feature_lng_lat(feature: Any) -> tuple[float | None, float | None]:
    if not isinstance(feature, dict):
        return None, None
    geometry = feature.get("geometry") or {}
    if not isinstance(geometry, dict) or geometry.get("type") != "Point":
        return None, None
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        return None, None
    lng = _safe_float(coordinates[0])
    lat = _safe_float(coordinates[1])
    if lng is None or lat is None:
        return None, None
    return lng, lat
