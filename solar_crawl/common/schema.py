"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from solar_crawl.common.errors import ConfigError

GRID_BOUNDARY_MODES = {"inclusive", "accumulate"}
FILE_KEYS = {"dataset", "geojson", "csv", "grid_geojson", "grid_circles", "log", "summary"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_regions(regions: object) -> list[dict]:
    if not isinstance(regions, list) or not regions:
        raise ConfigError("regions must be a non-empty list")

    names: list[str] = []
    for idx, region in enumerate(regions):
        ctx = f"regions[{idx}]"
        _assert_required_keys(region, {"name", "min_lat", "max_lat", "min_lng", "max_lng"}, ctx)
        if region["min_lat"] >= region["max_lat"]:
            raise ConfigError(f"{ctx}.min_lat must be below max_lat")
        if region["min_lng"] >= region["max_lng"]:
            raise ConfigError(f"{ctx}.min_lng must be below max_lng")
        names.append(str(region["name"]))

    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate region names: {', '.join(sorted(dupes))}")
    return regions


def validate_crawler_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"api", "crawler", "grid", "dedup", "regions", "files"}
    _assert_required_keys(cfg, top_required, "crawler config")
    _assert_no_unknown_keys(cfg, top_required, "crawler config", allow_unknown)

    _assert_required_keys(
        cfg["api"],
        {"query_url", "warmup_url", "timeout_seconds", "mode", "headers"},
        "api",
    )
    _assert_positive(cfg["api"]["timeout_seconds"], "api.timeout_seconds")

    crawler = cfg["crawler"]
    _assert_required_keys(
        crawler,
        {"delay_seconds", "grid_spacing", "search_radius_m", "save_frequency", "retry_attempts"},
        "crawler",
    )
    _assert_positive(crawler["grid_spacing"], "crawler.grid_spacing")
    _assert_positive(crawler["search_radius_m"], "crawler.search_radius_m")
    if not isinstance(crawler["save_frequency"], int) or crawler["save_frequency"] < 1:
        raise ConfigError("crawler.save_frequency must be an integer >= 1")
    if not isinstance(crawler["retry_attempts"], int) or crawler["retry_attempts"] < 1:
        raise ConfigError("crawler.retry_attempts must be an integer >= 1")
    if crawler["delay_seconds"] < 0:
        raise ConfigError("crawler.delay_seconds must not be negative")

    _assert_required_keys(cfg["grid"], {"boundary"}, "grid")
    if cfg["grid"]["boundary"] not in GRID_BOUNDARY_MODES:
        raise ConfigError(f"Unsupported grid.boundary: {cfg['grid']['boundary']}")

    _assert_required_keys(cfg["dedup"], {"intra_batch"}, "dedup")
    if not isinstance(cfg["dedup"]["intra_batch"], bool):
        raise ConfigError("dedup.intra_batch must be a boolean")

    validate_regions(cfg["regions"])
    _assert_required_keys(cfg["files"], FILE_KEYS, "files")

    return cfg
