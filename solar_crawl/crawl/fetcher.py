"""Point fetcher for the REVO GraphicAPI point query."""

from __future__ import annotations

import logging
from typing import Any

from solar_crawl.common.http import HttpClient, HttpRequestError, TimeoutConfig
from solar_crawl.common.logging import log_event
from solar_crawl.common.models import CrawlSettings, PointRecord


def build_query_payload(lng: float, lat: float, radius_m: int, mode: int = 3) -> dict[str, Any]:
    # The service expects every coordinate field as a string.
    return {
        "Mode": mode,
        "X": str(lng),
        "Y": str(lat),
        "Radius": str(radius_m),
    }


class PointFetcher:
    """Two-step exchange per cell: warm-up to seed session cookies, then the query.

    ``fetch`` returns ``None`` for any failure so one bad cell never stops a crawl.
    """

    def __init__(
        self,
        client: HttpClient,
        settings: CrawlSettings,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = TimeoutConfig(connect=settings.timeout_seconds, read=settings.timeout_seconds)

    def warm_up(self, payload: dict[str, Any]) -> bool:
        try:
            self.client.post(self.settings.warmup_url, payload=payload, timeout=self.timeout)
        except HttpRequestError as exc:
            log_event(
                self.logger,
                f"warm-up request failed: {exc}",
                level=logging.WARNING,
                stage="fetch",
                event="WARMUP_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return False
        return True

    def fetch(self, lng: float, lat: float, radius_m: int) -> list[PointRecord] | None:
        payload = build_query_payload(lng, lat, radius_m, mode=self.settings.mode)
        if not self.warm_up(payload):
            return None

        try:
            data = self.client.post_json(self.settings.query_url, payload=payload, timeout=self.timeout)
        except HttpRequestError as exc:
            log_event(
                self.logger,
                f"point query failed: {exc}",
                level=logging.WARNING,
                stage="fetch",
                event="QUERY_FAIL",
                status="error",
                error_code=exc.error_code,
                lat=lat,
                lng=lng,
            )
            return None

        if not isinstance(data, list):
            log_event(
                self.logger,
                "point query returned a non-array body",
                level=logging.WARNING,
                stage="fetch",
                event="QUERY_FAIL",
                status="error",
                error_code="UNEXPECTED_PAYLOAD",
                lat=lat,
                lng=lng,
            )
            return None
        return [record for record in data if isinstance(record, dict)]
