"""Crawl orchestration: grid → fetch → dedup → dataset, with periodic checkpoints."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable, Protocol, Sequence

from solar_crawl.common.config_loader import ConfigBundle
from solar_crawl.common.http import HttpClient, RetryConfig, TimeoutConfig
from solar_crawl.common.logging import log_event
from solar_crawl.common.models import CrawlSettings, Dataset, GridCell, PointRecord, Region
from solar_crawl.crawl.dedup import DedupIndex
from solar_crawl.crawl.fetcher import PointFetcher
from solar_crawl.crawl.grid import cell_counts_by_region, generate_grid
from solar_crawl.crawl.populated import PopulatedCellLocator, filter_cells
from solar_crawl.crawl.store import DatasetStore
from solar_crawl.pipeline.export import write_points_csv
from solar_crawl.pipeline.geojson import write_dataset_geojson
from solar_crawl.pipeline.reports import log_summary, summarize_points, write_crawl_report


class CrawlState(str, Enum):
    INIT = "init"
    LOADING = "loading"
    FILTERING = "filtering"
    CRAWLING = "crawling"
    FINALIZING = "finalizing"
    DONE = "done"


class Fetcher(Protocol):
    def fetch(self, lng: float, lat: float, radius_m: int) -> list[PointRecord] | None: ...


Exporter = Callable[[Dataset], object]


@dataclass
class CrawlResult:
    run_id: str
    mode: str
    cells_total: int = 0
    cells_visited: int = 0
    cells_failed: int = 0
    new_points: int = 0
    total_points: int = 0
    checkpoints: int = 0
    summary: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload.pop("summary")
        return payload


class CrawlOrchestrator:
    def __init__(
        self,
        *,
        regions: list[Region],
        settings: CrawlSettings,
        fetcher: Fetcher,
        store: DatasetStore,
        run_id: str,
        logger: logging.Logger | None = None,
        update_mode: bool = False,
        prior_export_path: Path | None = None,
        exporters: Sequence[Exporter] = (),
        report_path: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.regions = regions
        self.settings = settings
        self.fetcher = fetcher
        self.store = store
        self.run_id = run_id
        self.logger = logger or logging.getLogger(__name__)
        self.update_mode = update_mode
        self.prior_export_path = prior_export_path
        self.exporters = list(exporters)
        self.report_path = report_path
        self.sleep = sleep

        self.state = CrawlState.INIT
        self.dataset = Dataset()
        self.dedup = DedupIndex(intra_batch=settings.intra_batch_dedup)
        self.result = CrawlResult(run_id=run_id, mode="update" if update_mode else "full")

    def _log(self, message: str, *, level: int = logging.INFO, **fields) -> None:
        fields.setdefault("stage", self.state.value)
        log_event(self.logger, message, level=level, run_id=self.run_id, **fields)

    def _enter(self, state: CrawlState) -> None:
        self.state = state
        self._log(f"entering {state.value}", level=logging.DEBUG, event="STATE", status="ok")

    def run(self) -> CrawlResult:
        started = time.monotonic()
        self._log(f"crawl started ({self.result.mode} mode)", event="CRAWL_START", status="ok")

        self._enter(CrawlState.LOADING)
        self.load()

        cells = generate_grid(self.regions, self.settings.grid_spacing, boundary=self.settings.boundary)
        for region, count in cell_counts_by_region(cells).items():
            self._log(f"region {region}: {count} grid points", event="GRID_BUILT", region=region, cell_count=count)
        self._log(f"generated {len(cells)} grid points", event="GRID_BUILT", status="ok", cell_count=len(cells))

        if self.update_mode:
            self._enter(CrawlState.FILTERING)
            cells = self.select_update_cells(cells)

        self._enter(CrawlState.CRAWLING)
        self.crawl(cells)

        self._enter(CrawlState.FINALIZING)
        self.finalize()

        self._enter(CrawlState.DONE)
        self._log(
            f"crawl completed. total points: {self.result.total_points} (new: {self.result.new_points})",
            event="CRAWL_END",
            status="ok",
            total_points=self.result.total_points,
            points_new=self.result.new_points,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return self.result

    def load(self) -> None:
        self.dataset = self.store.load()
        self.dedup = DedupIndex.from_points(self.dataset.points, intra_batch=self.settings.intra_batch_dedup)
        self._log(
            f"loaded {self.dataset.total_points} existing points",
            event="DATASET_LOADED",
            status="ok",
            total_points=self.dataset.total_points,
        )

    def select_update_cells(self, cells: list[GridCell]) -> list[GridCell]:
        if self.prior_export_path is None:
            populated: set = set()
        else:
            locator = PopulatedCellLocator(self.regions, self.settings.grid_spacing, logger=self.logger)
            populated = locator.locate_from_file(self.prior_export_path)

        if not populated:
            self._log("no populated cells known, crawling the full grid", event="UPDATE_FILTER", status="skipped")
            return cells

        filtered = filter_cells(cells, populated)
        self._log(
            f"update mode: filtering from {len(cells)} to {len(filtered)} grids with existing data",
            event="UPDATE_FILTER",
            status="ok",
            cell_count=len(filtered),
        )
        if not filtered:
            self._log("no grid cell matches the populated set, nothing to crawl", event="UPDATE_FILTER", status="empty")
        return filtered

    def process_cell(self, cell: GridCell, index: int, total: int) -> int:
        """Fetch one cell and append its novel points; failures count as zero points."""
        self._log(
            f"processing grid {index}/{total} - lat: {cell.lat}, lng: {cell.lng}",
            event="CELL_START",
            region=cell.region,
            cell_index=index,
            cell_count=total,
            lat=cell.lat,
            lng=cell.lng,
        )
        try:
            points = self.fetcher.fetch(cell.lng, cell.lat, self.settings.search_radius_m)
            if points is None:
                self.result.cells_failed += 1
                self._log(
                    "fetch failed, treating cell as empty",
                    level=logging.WARNING,
                    event="CELL_FETCH_FAIL",
                    status="error",
                    cell_index=index,
                    lat=cell.lat,
                    lng=cell.lng,
                )
                return 0
            novel = self.dedup.filter_batch(points)
        except Exception as exc:
            self.result.cells_failed += 1
            self._log(
                f"unexpected failure on cell: {exc!r}",
                level=logging.ERROR,
                event="CELL_FETCH_FAIL",
                status="error",
                error_code="UNEXPECTED_ERROR",
                cell_index=index,
                lat=cell.lat,
                lng=cell.lng,
            )
            return 0

        if novel:
            self.dataset.points.extend(novel)
            self.result.new_points += len(novel)
            self._log(
                f"found {len(novel)} new points. total: {self.dataset.total_points}",
                event="CELL_NEW_POINTS",
                status="ok",
                cell_index=index,
                points_in=len(points),
                points_new=len(novel),
                total_points=self.dataset.total_points,
            )
        return len(novel)

    def checkpoint(self) -> None:
        self.store.save(self.dataset)
        self.result.checkpoints += 1
        self._log(
            f"checkpoint saved ({self.dataset.total_points} points)",
            level=logging.DEBUG,
            event="CHECKPOINT",
            status="ok",
            total_points=self.dataset.total_points,
        )

    def crawl(self, cells: list[GridCell]) -> None:
        total = len(cells)
        self.result.cells_total = total
        frequency = self.settings.save_frequency
        try:
            for index, cell in enumerate(cells, start=1):
                self.process_cell(cell, index, total)
                self.result.cells_visited = index
                if index % frequency == 0 or index == total:
                    self.checkpoint()
                self.sleep(self.settings.delay_seconds)
        except KeyboardInterrupt:
            self._log(
                f"interrupted after {self.result.cells_visited}/{total} cells, saving progress",
                level=logging.WARNING,
                event="CRAWL_INTERRUPTED",
                status="interrupted",
                cell_index=self.result.cells_visited,
                total_points=self.dataset.total_points,
            )
            self.checkpoint()
            raise

    def finalize(self) -> None:
        self.checkpoint()
        for exporter in self.exporters:
            exporter(self.dataset)
        self._log(f"exported {self.dataset.total_points} points", event="EXPORT", status="ok")

        self.result.total_points = self.dataset.total_points
        self.result.summary = summarize_points(self.dataset.points)
        log_summary(self.logger, self.result.summary, run_id=self.run_id)
        if self.report_path is not None:
            write_crawl_report(
                self.report_path,
                run_id=self.run_id,
                mode=self.result.mode,
                crawl=self.result.to_dict(),
                summary=self.result.summary,
            )


def build_exporters(bundle: ConfigBundle, data_dir: Path) -> list[Exporter]:
    return [
        partial(_write_csv, data_dir / bundle.files["csv"]),
        partial(write_dataset_geojson, data_dir / bundle.files["geojson"]),
    ]


def _write_csv(path: Path, dataset: Dataset) -> Path:
    return write_points_csv(path, dataset.points)


def build_http_client(settings: CrawlSettings, data_dir: Path, logger: logging.Logger | None = None) -> HttpClient:
    cookie_file = data_dir / settings.cookie_file if settings.cookie_file else None
    return HttpClient(
        timeout=TimeoutConfig(connect=settings.timeout_seconds, read=settings.timeout_seconds),
        retry=RetryConfig(max_attempts=settings.retry_attempts),
        headers=settings.headers,
        cookie_file=cookie_file,
        logger=logger,
    )


def run_crawl(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    *,
    update_mode: bool = False,
    logger: logging.Logger | None = None,
    http_client: HttpClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CrawlResult:
    owns_client = http_client is None
    client = http_client or build_http_client(bundle.settings, data_dir, logger)
    try:
        orchestrator = CrawlOrchestrator(
            regions=bundle.regions,
            settings=bundle.settings,
            fetcher=PointFetcher(client, bundle.settings, logger=logger),
            store=DatasetStore(data_dir / bundle.files["dataset"], bundle.regions, logger=logger),
            run_id=run_id,
            logger=logger,
            update_mode=update_mode,
            prior_export_path=data_dir / bundle.files["geojson"],
            exporters=build_exporters(bundle, data_dir),
            report_path=data_dir / bundle.files["summary"],
            sleep=sleep,
        )
        return orchestrator.run()
    finally:
        if owns_client:
            client.close()
