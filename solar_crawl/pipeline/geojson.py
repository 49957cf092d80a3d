"""GeoJSON builders for the point dataset and the crawl grid."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pyproj import Geod

from solar_crawl.common.attributes import extract_installer_info, parse_capacity
from solar_crawl.common.constants import DATA_SOURCE
from solar_crawl.common.fs import write_json
from solar_crawl.common.geometry import extract_point_lng_lat
from solar_crawl.common.models import Dataset, GridCell, PointRecord, Region
from solar_crawl.common.time_utils import local_timestamp

POINT_PROPERTIES = (
    "pointId",
    "id",
    "name",
    "address",
    "countryId",
    "townId",
    "village",
    "neighborhood",
    "region",
    "categoryId",
    "dTypeId",
    "coordSysId",
    "seq",
)

_WGS84 = Geod(ellps="WGS84")


def point_to_feature(point: PointRecord) -> dict[str, Any] | None:
    lng, lat = extract_point_lng_lat(point)
    if lng is None or lat is None:
        return None

    info = extract_installer_info(point)
    properties: dict[str, Any] = {key: point.get(key) for key in POINT_PROPERTIES}
    properties.update(
        {
            "installer_name": info["installer_name"],
            "status": info["status"],
            "renewable_type": info["renewable_type"],
            "equipment_type": info["equipment_type"],
            "location_type": info["location_type"],
            "capacity_kw": parse_capacity(info["capacity"]),
            "original_group_content": point.get("groupContent"),
        }
    )
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lng, lat]},
        "properties": properties,
    }


def dataset_to_feature_collection(dataset: Dataset) -> tuple[dict[str, Any], int]:
    """Return the FeatureCollection and the number of points skipped for missing coordinates."""
    features = []
    skipped = 0
    for point in dataset.points:
        feature = point_to_feature(point)
        if feature is None:
            skipped += 1
            continue
        features.append(feature)

    collection = {
        "type": "FeatureCollection",
        "metadata": {
            "generated": local_timestamp(),
            "total_installations": len(dataset.points),
            "source": DATA_SOURCE,
            "original_timestamp": dataset.timestamp,
        },
        "features": features,
    }
    return collection, skipped


def write_dataset_geojson(path: Path, dataset: Dataset) -> dict[str, int]:
    collection, skipped = dataset_to_feature_collection(dataset)
    write_json(path, collection, sort_keys=False)
    return {"processed": len(collection["features"]), "skipped": skipped}


def grid_to_feature_collection(
    cells: list[GridCell],
    regions: list[Region],
    *,
    spacing: float,
    radius_m: int,
) -> dict[str, Any]:
    radius_km = radius_m / 1000
    features = []
    for index, cell in enumerate(cells, start=1):
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [cell.lng, cell.lat]},
                "properties": {
                    "grid_index": index,
                    "latitude": cell.lat,
                    "longitude": cell.lng,
                    "search_radius_km": radius_km,
                    "grid_id": f"grid_{index}",
                    "region": cell.region,
                    "row": round(cell.lat / spacing),
                    "col": round(cell.lng / spacing),
                },
            }
        )

    return {
        "type": "FeatureCollection",
        "metadata": {
            "generated": local_timestamp(),
            "description": "Grid points covering Taiwan mainland and outer islands",
            "total_points": len(cells),
            "grid_spacing": spacing,
            "search_radius_km": radius_km,
            "regions": [region.name for region in regions],
            "bounds": {region.name: region.to_bounds() for region in regions},
        },
        "features": features,
    }


def search_circle(lng: float, lat: float, radius_m: float, segments: int = 32) -> dict[str, Any]:
    """Closed polygon approximating a geodesic circle around ``(lng, lat)``."""
    azimuths = [i * 360.0 / segments for i in range(segments + 1)]
    lngs, lats, _back = _WGS84.fwd(
        [lng] * len(azimuths),
        [lat] * len(azimuths),
        azimuths,
        [radius_m] * len(azimuths),
    )
    ring = [[round(x, 6), round(y, 6)] for x, y in zip(lngs, lats)]
    # fwd at 0 and 360 degrees can differ in the last bits.
    ring[-1] = list(ring[0])
    return {"type": "Polygon", "coordinates": [ring]}


def grid_circles_feature_collection(cells: list[GridCell], *, radius_m: int) -> dict[str, Any]:
    features = []
    for index, cell in enumerate(cells, start=1):
        features.append(
            {
                "type": "Feature",
                "geometry": search_circle(cell.lng, cell.lat, radius_m),
                "properties": {
                    "grid_index": index,
                    "center_lat": cell.lat,
                    "center_lng": cell.lng,
                    "radius_km": radius_m / 1000,
                    "grid_id": f"search_{index}",
                    "region": cell.region,
                },
            }
        )
    return {
        "type": "FeatureCollection",
        "metadata": {
            "generated": local_timestamp(),
            "description": "Search radius circles for each grid point",
            "total_circles": len(cells),
        },
        "features": features,
    }
