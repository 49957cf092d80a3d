"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from solar_crawl.common.errors import ConfigError
from solar_crawl.common.fs import read_yaml
from solar_crawl.common.models import CrawlSettings, Region
from solar_crawl.common.schema import validate_crawler_config

CONFIG_FILENAME = "crawler.yml"


@dataclass(frozen=True)
class ConfigBundle:
    settings: CrawlSettings
    regions: list[Region]
    files: dict[str, Path]
    raw: dict


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def build_regions(entries: list[dict]) -> list[Region]:
    return [
        Region(
            name=str(entry["name"]),
            min_lat=float(entry["min_lat"]),
            max_lat=float(entry["max_lat"]),
            min_lng=float(entry["min_lng"]),
            max_lng=float(entry["max_lng"]),
        )
        for entry in entries
    ]


def build_settings(cfg: dict) -> CrawlSettings:
    api = cfg["api"]
    crawler = cfg["crawler"]
    return CrawlSettings(
        query_url=api["query_url"],
        warmup_url=api["warmup_url"],
        timeout_seconds=float(api["timeout_seconds"]),
        mode=int(api["mode"]),
        headers={str(k): str(v) for k, v in (api.get("headers") or {}).items()},
        delay_seconds=float(crawler["delay_seconds"]),
        grid_spacing=float(crawler["grid_spacing"]),
        search_radius_m=int(crawler["search_radius_m"]),
        save_frequency=int(crawler["save_frequency"]),
        retry_attempts=int(crawler["retry_attempts"]),
        cookie_file=crawler.get("cookie_file") or None,
        boundary=cfg["grid"]["boundary"],
        intra_batch_dedup=bool(cfg["dedup"]["intra_batch"]),
    )


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    cfg = validate_crawler_config(cfg, allow_unknown=allow_unknown)

    return ConfigBundle(
        settings=build_settings(cfg),
        regions=build_regions(cfg["regions"]),
        files={key: Path(value) for key, value in cfg["files"].items()},
        raw=cfg,
    )
