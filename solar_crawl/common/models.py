"""Data models shared by the crawler and its exporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PointRecord = dict[str, Any]


@dataclass(frozen=True)
class Region:
    name: str
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    def to_bounds(self) -> dict[str, float]:
        # Key names match the dataset files written by earlier crawler versions.
        return {
            "minLat": self.min_lat,
            "maxLat": self.max_lat,
            "minLng": self.min_lng,
            "maxLng": self.max_lng,
        }


@dataclass(frozen=True)
class GridCell:
    lat: float
    lng: float
    region: str

    @property
    def key(self) -> tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True)
class CrawlSettings:
    query_url: str
    warmup_url: str
    timeout_seconds: float = 15.0
    mode: int = 3
    headers: dict[str, str] = field(default_factory=dict)
    delay_seconds: float = 0.5
    grid_spacing: float = 0.1
    search_radius_m: int = 10000
    save_frequency: int = 5
    retry_attempts: int = 1
    cookie_file: str | None = None
    boundary: str = "inclusive"
    intra_batch_dedup: bool = True


@dataclass
class Dataset:
    points: list[PointRecord] = field(default_factory=list)
    timestamp: str | None = None
    grid_bounds: dict[str, dict[str, float]] = field(default_factory=dict)

    @property
    def total_points(self) -> int:
        return len(self.points)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "total_points": self.total_points,
            "grid_bounds": self.grid_bounds,
            "points": self.points,
        }
