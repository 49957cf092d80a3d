from __future__ import annotations

import json
from pathlib import Path

import pytest

from solar_crawl.common.errors import CheckpointError
from solar_crawl.common.fs import read_json, write_json
from solar_crawl.common.models import CrawlSettings, Dataset, Region
from solar_crawl.crawl.grid import generate_grid
from solar_crawl.crawl.runner import CrawlOrchestrator, CrawlState
from solar_crawl.crawl.store import DatasetStore

REGION_A = Region(name="A", min_lat=0.0, max_lat=0.2, min_lng=0.0, max_lng=0.2)
SETTINGS = CrawlSettings(
    query_url="https://example.test/api/Point",
    warmup_url="https://example.test/api/Point/GetOnePointByQuery",
    delay_seconds=0.5,
    grid_spacing=0.1,
    search_radius_m=10000,
    save_frequency=5,
)


class FakeFetcher:
    """Returns scripted results keyed by (lat, lng); unknown cells return []."""

    def __init__(self, results: dict | None = None):
        self.results = results or {}
        self.calls: list[tuple[float, float, int]] = []

    def fetch(self, lng, lat, radius_m):
        self.calls.append((lat, lng, radius_m))
        outcome = self.results.get((lat, lng), [])
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class CountingStore(DatasetStore):
    def __init__(self, path: Path, regions):
        super().__init__(path, regions)
        self.saved_totals: list[int] = []

    def save(self, dataset: Dataset) -> None:
        super().save(dataset)
        self.saved_totals.append(dataset.total_points)


def _orchestrator(tmp_path: Path, fetcher, *, settings=SETTINGS, store=None, **kwargs):
    sleeps: list[float] = []
    orchestrator = CrawlOrchestrator(
        regions=[REGION_A],
        settings=settings,
        fetcher=fetcher,
        store=store or CountingStore(tmp_path / "raw" / "points.json", [REGION_A]),
        run_id="run-test",
        sleep=sleeps.append,
        **kwargs,
    )
    return orchestrator, sleeps


def _ids(path: Path) -> list:
    return [point["pointId"] for point in read_json(path)["points"]]


@pytest.mark.integration
def test_full_crawl_visits_every_cell_in_order_and_checkpoints(tmp_path: Path):
    fetcher = FakeFetcher({(0.0, 0.1): [{"pointId": "p1"}], (0.2, 0.2): [{"pointId": "p2"}, {"pointId": "p1"}]})
    orchestrator, sleeps = _orchestrator(tmp_path, fetcher)

    result = orchestrator.run()

    assert [(lat, lng) for lat, lng, _ in fetcher.calls] == [cell.key for cell in generate_grid([REGION_A], 0.1)]
    assert {radius for _, _, radius in fetcher.calls} == {10000}
    assert sleeps == [0.5] * 9
    # Every 5th cell, the last cell, then the final save.
    assert orchestrator.store.saved_totals == [1, 2, 2]
    assert result.new_points == 2
    assert result.total_points == 2
    assert result.cells_visited == 9
    assert orchestrator.state is CrawlState.DONE
    assert _ids(tmp_path / "raw" / "points.json") == ["p1", "p2"]


@pytest.mark.integration
def test_resume_appends_only_unseen_points_after_existing_ones(tmp_path: Path):
    dataset_path = tmp_path / "raw" / "points.json"
    write_json(dataset_path, {"timestamp": "x", "total_points": 2, "grid_bounds": {}, "points": [{"pointId": "a"}, {"pointId": "b"}]})
    fetcher = FakeFetcher({(0.1, 0.1): [{"pointId": "c"}, {"pointId": "a"}, {"pointId": "d"}, {"pointId": "b"}]})
    orchestrator, _ = _orchestrator(tmp_path, fetcher)

    result = orchestrator.run()

    assert _ids(dataset_path) == ["a", "b", "c", "d"]
    assert result.new_points == 2
    assert read_json(dataset_path)["total_points"] == 4


@pytest.mark.integration
def test_second_run_with_same_responses_changes_nothing(tmp_path: Path):
    results = {(0.0, 0.0): [{"pointId": "p1"}, {"pointId": "p2"}], (0.1, 0.2): [{"pointId": "p3"}]}
    first, _ = _orchestrator(tmp_path, FakeFetcher(results))
    first.run()
    snapshot = read_json(tmp_path / "raw" / "points.json")["points"]

    second, _ = _orchestrator(tmp_path, FakeFetcher(results))
    result = second.run()

    assert result.new_points == 0
    assert read_json(tmp_path / "raw" / "points.json")["points"] == snapshot


@pytest.mark.integration
def test_repeated_id_inside_one_batch_is_stored_once(tmp_path: Path):
    fetcher = FakeFetcher({(0.0, 0.0): [{"pointId": "p1", "n": 1}, {"pointId": "p1", "n": 2}]})
    orchestrator, _ = _orchestrator(tmp_path, fetcher)

    orchestrator.run()

    assert read_json(tmp_path / "raw" / "points.json")["points"] == [{"pointId": "p1", "n": 1}]


@pytest.mark.integration
def test_snapshot_dedup_policy_keeps_repeats_from_one_batch(tmp_path: Path):
    settings = CrawlSettings(
        query_url=SETTINGS.query_url,
        warmup_url=SETTINGS.warmup_url,
        delay_seconds=0,
        intra_batch_dedup=False,
    )
    fetcher = FakeFetcher({(0.0, 0.0): [{"pointId": "p1"}, {"pointId": "p1"}], (0.0, 0.1): [{"pointId": "p1"}]})
    orchestrator, _ = _orchestrator(tmp_path, fetcher, settings=settings)

    orchestrator.run()

    assert _ids(tmp_path / "raw" / "points.json") == ["p1", "p1"]


@pytest.mark.integration
def test_failed_cells_count_as_empty_and_crawl_continues(tmp_path: Path):
    fetcher = FakeFetcher(
        {
            (0.0, 0.0): None,
            (0.0, 0.1): RuntimeError("socket closed"),
            (0.0, 0.2): [{"pointId": "p1"}],
        }
    )
    orchestrator, sleeps = _orchestrator(tmp_path, fetcher)

    result = orchestrator.run()

    assert result.cells_failed == 2
    assert len(fetcher.calls) == 9
    assert len(sleeps) == 9
    assert _ids(tmp_path / "raw" / "points.json") == ["p1"]


@pytest.mark.integration
def test_checkpoint_write_failure_aborts_run(tmp_path: Path):
    class FailingStore(DatasetStore):
        def save(self, dataset):
            raise CheckpointError("disk full")

    fetcher = FakeFetcher()
    orchestrator, _ = _orchestrator(tmp_path, fetcher, store=FailingStore(tmp_path / "points.json", [REGION_A]))

    with pytest.raises(CheckpointError):
        orchestrator.run()
    assert len(fetcher.calls) == 5


@pytest.mark.integration
def test_interrupt_saves_progress_and_rerun_is_a_superset(tmp_path: Path):
    dataset_path = tmp_path / "raw" / "points.json"
    interrupted = FakeFetcher(
        {
            (0.0, 0.0): [{"pointId": "p1"}],
            (0.0, 0.1): [{"pointId": "p2"}],
            (0.0, 0.2): KeyboardInterrupt(),
        }
    )
    orchestrator, _ = _orchestrator(tmp_path, interrupted)

    with pytest.raises(KeyboardInterrupt):
        orchestrator.run()
    checkpointed = set(_ids(dataset_path))
    assert checkpointed == {"p1", "p2"}

    resumed = FakeFetcher({(0.0, 0.0): [{"pointId": "p1"}], (0.2, 0.0): [{"pointId": "p3"}]})
    rerun, _ = _orchestrator(tmp_path, resumed)
    rerun.run()

    assert checkpointed <= set(_ids(dataset_path))
    assert _ids(dataset_path) == ["p1", "p2", "p3"]
    assert len(resumed.calls) == 9


@pytest.mark.integration
def test_update_mode_crawls_only_populated_cells(tmp_path: Path):
    export = tmp_path / "geojson" / "prior.geojson"
    write_json(
        export,
        {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0.15, 0.15]}, "properties": {}},
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0.01, 0.2]}, "properties": {}},
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [5.0, 5.0]}, "properties": {}},
            ],
        },
    )
    fetcher = FakeFetcher({(0.1, 0.1): [{"pointId": "p9"}]})
    orchestrator, sleeps = _orchestrator(tmp_path, fetcher, update_mode=True, prior_export_path=export)

    result = orchestrator.run()

    assert [(lat, lng) for lat, lng, _ in fetcher.calls] == [(0.1, 0.1), (0.2, 0.0)]
    assert len(sleeps) == 2
    assert result.mode == "update"
    assert result.cells_total == 2


@pytest.mark.integration
def test_update_mode_without_prior_export_crawls_everything(tmp_path: Path):
    fetcher = FakeFetcher()
    orchestrator, _ = _orchestrator(
        tmp_path,
        fetcher,
        update_mode=True,
        prior_export_path=tmp_path / "geojson" / "missing.geojson",
    )

    orchestrator.run()

    assert len(fetcher.calls) == 9


@pytest.mark.integration
def test_update_mode_with_no_matching_cells_is_an_empty_crawl(tmp_path: Path):
    export = tmp_path / "prior.geojson"
    write_json(
        export,
        {"features": [{"type": "Feature", "geometry": {"type": "Point", "coordinates": [0.15, 0.15]}}]},
    )
    fetcher = FakeFetcher()
    orchestrator, sleeps = _orchestrator(tmp_path, fetcher, update_mode=True, prior_export_path=export)
    cells = generate_grid([REGION_A], 0.1)[:2]

    selected = orchestrator.select_update_cells(cells)
    orchestrator.crawl(selected)

    assert selected == []
    assert fetcher.calls == []
    assert sleeps == []


@pytest.mark.integration
def test_finalize_runs_exporters_and_writes_report(tmp_path: Path):
    exported: list[int] = []
    report_path = tmp_path / "reports" / "summary.json"
    fetcher = FakeFetcher(
        {
            (0.1, 0.0): [
                {
                    "pointId": "p1",
                    "groupContent": [{"value": json.dumps({"案件狀態": "已完工", "商轉容量": "10"})}],
                }
            ]
        }
    )
    orchestrator, _ = _orchestrator(
        tmp_path,
        fetcher,
        exporters=[lambda dataset: exported.append(dataset.total_points)],
        report_path=report_path,
    )

    result = orchestrator.run()

    assert exported == [1]
    assert result.summary["by_status"] == {"已完工": 1}
    report = read_json(report_path)
    assert report["run_id"] == "run-test"
    assert report["mode"] == "full"
    assert report["crawl"]["new_points"] == 1
    assert report["summary"]["capacity_kw"]["total"] == 10


@pytest.mark.integration
def test_dataset_with_non_record_entries_still_finalizes(tmp_path: Path):
    dataset_path = tmp_path / "raw" / "points.json"
    write_json(dataset_path, {"timestamp": "x", "total_points": 2, "grid_bounds": {}, "points": [None, {"pointId": "a"}]})
    orchestrator, _ = _orchestrator(tmp_path, FakeFetcher())

    result = orchestrator.run()

    assert result.total_points == 1
    assert _ids(dataset_path) == ["a"]
