"""JSON-lines logging with a stable schema."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from solar_crawl.common.constants import JSON_LOG_FIELDS
from solar_crawl.common.fs import ensure_dir
from solar_crawl.common.time_utils import utc_timestamp_iso

DEFAULT_LOG_PATH = Path("logs") / "crawler.log.jsonl"


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "level": record.levelname,
        }
        for field in JSON_LOG_FIELDS:
            if field in ("timestamp", "message"):
                continue
            payload[field] = getattr(record, field, None)
        payload["message"] = record.getMessage()
        return json.dumps(payload, ensure_ascii=False)


def build_logger(
    run_id: str,
    data_dir: Path,
    level: str = "INFO",
    log_path: Path | None = None,
) -> logging.Logger:
    logger = logging.getLogger(f"solar_crawl.{run_id}")
    logger.setLevel(level.upper())
    logger.handlers.clear()
    logger.propagate = False

    stream = logging.StreamHandler()
    stream.setFormatter(JsonLineFormatter())
    logger.addHandler(stream)

    path = data_dir / (log_path or DEFAULT_LOG_PATH)
    ensure_dir(path.parent)
    file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    file_handler.setFormatter(JsonLineFormatter())
    logger.addHandler(file_handler)

    return logger


def close_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def log_event(logger: logging.Logger, message: str, *, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)
