import csv
import json
from pathlib import Path

from solar_crawl.common.attributes import extract_installer_info, parse_capacity
from solar_crawl.common.models import Dataset, Region
from solar_crawl.crawl.grid import generate_grid
from solar_crawl.pipeline.export import CSV_HEADERS, write_points_csv
from solar_crawl.pipeline.geojson import (
    dataset_to_feature_collection,
    grid_circles_feature_collection,
    grid_to_feature_collection,
    search_circle,
)
from solar_crawl.pipeline.reports import summarize_points


def _point(point_id, *, status="已完工", location="屋頂型", capacity="99.5", x=120.5, y=23.4):
    value = {"設置者名稱": "某公司", "案件狀態": status, "設置位置": location, "商轉容量": capacity}
    return {
        "pointId": point_id,
        "id": 7,
        "name": f"site {point_id}",
        "address": "台南市",
        "x": x,
        "y": y,
        "groupContent": [{"title": "empty", "value": "not json"}, {"value": json.dumps(value, ensure_ascii=False)}],
    }


def test_extract_installer_info_uses_first_parseable_group():
    info = extract_installer_info(_point("p1"))

    assert info["installer_name"] == "某公司"
    assert info["status"] == "已完工"
    assert info["capacity"] == "99.5"
    assert info["renewable_type"] is None


def test_extract_installer_info_without_group_content():
    assert set(extract_installer_info({"pointId": "p"}).values()) == {None}


def test_parse_capacity():
    assert parse_capacity("12.5") == 12.5
    assert parse_capacity(3) == 3.0
    assert parse_capacity("n/a") is None
    assert parse_capacity(None) is None
    assert parse_capacity("NaN") is None
    assert parse_capacity("inf") is None
    assert parse_capacity("-Infinity") is None
    assert parse_capacity("1_000") is None


def test_write_points_csv_maps_columns(tmp_path: Path):
    path = write_points_csv(tmp_path / "processed" / "points.csv", [_point("p1"), {"pointId": "p2"}])

    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        rows = list(reader)
    assert reader.fieldnames == CSV_HEADERS
    assert rows[0]["longitude"] == "120.5"
    assert rows[0]["latitude"] == "23.4"
    assert rows[0]["status"] == "已完工"
    assert rows[0]["capacity_kw"] == "99.5"
    assert rows[1]["pointId"] == "p2"
    assert rows[1]["name"] == ""


def test_dataset_to_feature_collection_skips_points_without_coordinates():
    dataset = Dataset(points=[_point("p1"), _point("p2", x=None), _point("p3", y="bad")], timestamp="2025-07-01 10:00:00")

    collection, skipped = dataset_to_feature_collection(dataset)

    assert skipped == 2
    assert collection["metadata"]["total_installations"] == 3
    assert collection["metadata"]["original_timestamp"] == "2025-07-01 10:00:00"
    feature = collection["features"][0]
    assert feature["geometry"] == {"type": "Point", "coordinates": [120.5, 23.4]}
    assert feature["properties"]["pointId"] == "p1"
    assert feature["properties"]["capacity_kw"] == 99.5
    assert feature["properties"]["original_group_content"] is not None


def test_grid_feature_collection_numbers_cells_from_one():
    region = Region("A", 22.0, 22.1, 120.0, 120.1)
    cells = generate_grid([region], 0.1)

    collection = grid_to_feature_collection(cells, [region], spacing=0.1, radius_m=10000)

    assert collection["metadata"]["total_points"] == 4
    first = collection["features"][0]["properties"]
    assert first["grid_id"] == "grid_1"
    assert first["search_radius_km"] == 10
    assert first["row"] == 220
    assert first["col"] == 1200
    assert collection["features"][-1]["geometry"]["coordinates"] == [120.1, 22.1]


def test_grid_feature_rows_and_columns_follow_spacing():
    region = Region("A", 22.0, 22.5, 120.0, 120.25)
    cells = generate_grid([region], 0.25)

    collection = grid_to_feature_collection(cells, [region], spacing=0.25, radius_m=10000)

    indices = [(feature["properties"]["row"], feature["properties"]["col"]) for feature in collection["features"]]
    assert indices == [(88, 480), (88, 481), (89, 480), (89, 481), (90, 480), (90, 481)]


def test_search_circle_is_closed_ring_around_center():
    circle = search_circle(121.0, 23.5, 10000, segments=32)

    ring = circle["coordinates"][0]
    assert circle["type"] == "Polygon"
    assert len(ring) == 33
    assert ring[0] == ring[-1]
    # North point sits ~0.09 degrees above the centre for a 10 km radius.
    assert 23.58 < ring[0][1] < 23.60
    assert abs(ring[0][0] - 121.0) < 1e-6


def test_grid_circles_feature_collection():
    cells = generate_grid([Region("A", 22.0, 22.1, 120.0, 120.1)], 0.1)
    collection = grid_circles_feature_collection(cells, radius_m=5000)

    assert collection["metadata"]["total_circles"] == 4
    assert collection["features"][1]["properties"]["grid_id"] == "search_2"
    assert collection["features"][1]["properties"]["radius_km"] == 5


def test_summarize_points_counts_and_capacity():
    points = [
        _point("p1", capacity="100"),
        _point("p2", status="", location="地面型", capacity="50.5"),
        _point("p3", capacity="unknown"),
        {"pointId": "p4"},
    ]

    summary = summarize_points(points)

    assert summary["total_installations"] == 4
    assert summary["by_status"] == {"已完工": 2, "Unknown": 2}
    assert summary["by_location_type"] == {"屋頂型": 2, "地面型": 1, "Unknown": 1}
    assert summary["capacity_kw"] == {"total": 150.5, "installations_with_capacity": 2, "average": 75.25}


def test_summarize_empty_dataset():
    summary = summarize_points([])
    assert summary["capacity_kw"]["average"] == 0


def test_summary_and_geojson_ignore_non_finite_capacity():
    points = [_point("p1", capacity="NaN"), _point("p2", capacity="10")]

    summary = summarize_points(points)
    collection, _ = dataset_to_feature_collection(Dataset(points=points))

    assert summary["capacity_kw"] == {"total": 10.0, "installations_with_capacity": 1, "average": 10.0}
    assert collection["features"][0]["properties"]["capacity_kw"] is None
    json.dumps(collection, allow_nan=False)
