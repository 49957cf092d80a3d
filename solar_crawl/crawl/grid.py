"""Grid cell generation over an ordered list of named regions.

Cells are produced region by region in declaration order, then by latitude
ascending, then longitude ascending. Both resuming a crawl and mapping a
historical point back to its cell rely on this order being stable.
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator

from solar_crawl.common.models import GridCell, Region

COORD_PRECISION = 3
# Tolerance for (max - min) / step landing a hair below an integer.
_STEP_EPSILON = 1e-9


def axis_count(minimum: float, maximum: float, step: float) -> int:
    """Number of grid lines from ``minimum`` to ``maximum`` inclusive."""
    return int(math.floor((maximum - minimum) / step + _STEP_EPSILON)) + 1


def _inclusive_axis(minimum: float, maximum: float, step: float) -> Iterator[float]:
    for index in range(axis_count(minimum, maximum, step)):
        yield round(minimum + index * step, COORD_PRECISION)


def _accumulating_axis(minimum: float, maximum: float, step: float) -> Iterator[float]:
    # Repeated addition drifts; the last line is dropped whenever the running
    # value overshoots maximum by a rounding error.
    value = minimum
    while value <= maximum:
        yield round(value, COORD_PRECISION)
        value += step


def iter_region_cells(region: Region, spacing: float, *, boundary: str = "inclusive") -> Iterator[GridCell]:
    axis = _accumulating_axis if boundary == "accumulate" else _inclusive_axis
    for lat in axis(region.min_lat, region.max_lat, spacing):
        for lng in axis(region.min_lng, region.max_lng, spacing):
            yield GridCell(lat=lat, lng=lng, region=region.name)


def generate_grid(regions: Iterable[Region], spacing: float, *, boundary: str = "inclusive") -> list[GridCell]:
    if spacing <= 0:
        raise ValueError("grid spacing must be positive")
    cells: list[GridCell] = []
    for region in regions:
        cells.extend(iter_region_cells(region, spacing, boundary=boundary))
    return cells


def region_dimensions(region: Region, spacing: float) -> tuple[int, int]:
    return (
        axis_count(region.min_lat, region.max_lat, spacing),
        axis_count(region.min_lng, region.max_lng, spacing),
    )


def cell_counts_by_region(cells: Iterable[GridCell]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for cell in cells:
        counts[cell.region] = counts.get(cell.region, 0) + 1
    return counts
