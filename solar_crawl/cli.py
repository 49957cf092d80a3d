"""CLI entrypoint for the Taiwan solar installation crawler."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from solar_crawl.common.config_loader import ConfigBundle, load_config
from solar_crawl.common.constants import COMMANDS, EXIT_FAILURE, EXIT_SUCCESS
from solar_crawl.common.errors import CrawlerError, StageError
from solar_crawl.common.fs import write_json
from solar_crawl.common.ids import generate_run_id
from solar_crawl.common.logging import build_logger, close_logger, log_event
from solar_crawl.crawl.grid import generate_grid, region_dimensions
from solar_crawl.crawl.runner import run_crawl
from solar_crawl.crawl.store import DatasetStore
from solar_crawl.pipeline.geojson import (
    grid_circles_feature_collection,
    grid_to_feature_collection,
    write_dataset_geojson,
)
from solar_crawl.pipeline.reports import log_summary, summarize_points


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument(
        "--update",
        action="store_true",
        help="crawl only grid cells that already hold points in the last GeoJSON export",
    )
    parser.add_argument("--circles", action="store_true", help="also write search-radius circles (grid command)")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def run_convert(bundle: ConfigBundle, data_dir: Path, logger: logging.Logger, run_id: str) -> None:
    dataset_path = data_dir / bundle.files["dataset"]
    if not dataset_path.exists():
        raise StageError(f"Dataset not found: {dataset_path}")

    dataset = DatasetStore(dataset_path, logger=logger).load()
    if not dataset.points:
        raise StageError(f"No points found in {dataset_path}")

    out_path = data_dir / bundle.files["geojson"]
    counts = write_dataset_geojson(out_path, dataset)
    log_event(
        logger,
        f"converted {counts['processed']} points, skipped {counts['skipped']} without coordinates",
        run_id=run_id,
        stage="convert",
        event="EXPORT",
        status="ok",
        points_in=dataset.total_points,
        points_new=counts["processed"],
    )
    log_summary(logger, summarize_points(dataset.points), run_id=run_id)


def run_grid(bundle: ConfigBundle, data_dir: Path, logger: logging.Logger, run_id: str, *, circles: bool) -> None:
    settings = bundle.settings
    cells = generate_grid(bundle.regions, settings.grid_spacing, boundary=settings.boundary)
    write_json(
        data_dir / bundle.files["grid_geojson"],
        grid_to_feature_collection(
            cells,
            bundle.regions,
            spacing=settings.grid_spacing,
            radius_m=settings.search_radius_m,
        ),
        sort_keys=False,
    )
    for region in bundle.regions:
        rows, cols = region_dimensions(region, settings.grid_spacing)
        log_event(
            logger,
            f"region {region.name}: {rows} rows x {cols} columns",
            run_id=run_id,
            stage="grid",
            event="GRID_BUILT",
            region=region.name,
        )
    log_event(
        logger,
        f"grid GeoJSON written with {len(cells)} points",
        run_id=run_id,
        stage="grid",
        event="EXPORT",
        status="ok",
        cell_count=len(cells),
    )

    if circles:
        write_json(
            data_dir / bundle.files["grid_circles"],
            grid_circles_feature_collection(cells, radius_m=settings.search_radius_m),
            sort_keys=False,
        )
        log_event(logger, "search circles GeoJSON written", run_id=run_id, stage="grid", event="EXPORT", status="ok")


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id(args.command)
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    bundle = load_config(config_dir, overlay_config_dir=overlay_config_dir)
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level, log_path=bundle.files["log"])

    try:
        if args.command == "crawl":
            run_crawl(bundle, data_dir, run_id, update_mode=args.update, logger=logger)
        elif args.command == "convert":
            run_convert(bundle, data_dir, logger, run_id)
        elif args.command == "grid":
            run_grid(bundle, data_dir, logger, run_id, circles=args.circles)
        else:
            raise ValueError(f"Unknown command: {args.command}")
    except CrawlerError as exc:
        log_event(
            logger,
            f"{args.command} failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            stage=args.command,
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_FAILURE
    except KeyboardInterrupt:
        log_event(
            logger,
            f"{args.command} interrupted",
            level=logging.WARNING,
            run_id=run_id,
            stage=args.command,
            event="COMMAND_FAIL",
            status="interrupted",
            error_code="INTERRUPTED",
        )
        return EXIT_FAILURE
    except Exception as exc:
        log_event(
            logger,
            f"unexpected failure: {exc!r}",
            level=logging.ERROR,
            run_id=run_id,
            stage=args.command,
            event="COMMAND_FAIL",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return EXIT_FAILURE
    finally:
        close_logger(logger)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except CrawlerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
