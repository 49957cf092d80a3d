"""Dataset persistence: whole-file JSON checkpoints."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from solar_crawl.common.errors import CheckpointError
from solar_crawl.common.fs import read_json, write_json
from solar_crawl.common.logging import log_event
from solar_crawl.common.models import Dataset, Region
from solar_crawl.common.time_utils import local_timestamp


class DatasetStore:
    def __init__(
        self,
        path: Path,
        regions: list[Region] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.path = path
        self.regions = list(regions or [])
        self.logger = logger or logging.getLogger(__name__)

    def grid_bounds(self) -> dict[str, dict[str, float]]:
        return {region.name: region.to_bounds() for region in self.regions}

    def load(self) -> Dataset:
        """Load the last checkpoint; a missing or unreadable file yields an empty dataset."""
        if not self.path.exists():
            return Dataset(grid_bounds=self.grid_bounds())

        try:
            payload = read_json(self.path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log_event(
                self.logger,
                f"dataset file unreadable, starting empty: {exc}",
                level=logging.WARNING,
                stage="load",
                event="DATASET_INVALID",
                status="error",
            )
            return Dataset(grid_bounds=self.grid_bounds())

        points = payload.get("points") if isinstance(payload, dict) else None
        if not isinstance(points, list):
            log_event(
                self.logger,
                "dataset file has no points list, starting empty",
                level=logging.WARNING,
                stage="load",
                event="DATASET_INVALID",
                status="error",
            )
            return Dataset(grid_bounds=self.grid_bounds())

        records = [point for point in points if isinstance(point, dict)]
        dropped = len(points) - len(records)
        if dropped:
            log_event(
                self.logger,
                f"dropped {dropped} dataset entries that are not point records",
                level=logging.WARNING,
                stage="load",
                event="DATASET_INVALID",
                status="error",
                points_in=len(points),
                total_points=len(records),
            )

        return Dataset(
            points=records,
            timestamp=payload.get("timestamp"),
            grid_bounds=self.grid_bounds() or payload.get("grid_bounds") or {},
        )

    def save(self, dataset: Dataset) -> None:
        """Rewrite the whole dataset file."""
        dataset.timestamp = local_timestamp()
        if self.regions:
            dataset.grid_bounds = self.grid_bounds()
        try:
            write_json(self.path, dataset.to_dict(), sort_keys=False, atomic=True)
        except (OSError, TypeError, ValueError) as exc:
            raise CheckpointError(f"Failed to write dataset to {self.path}: {exc}") from exc
