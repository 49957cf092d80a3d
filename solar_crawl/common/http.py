"""HTTP client with timeouts, optional retries and a persistent cookie jar."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http.cookiejar import LoadError, LWPCookieJar
from pathlib import Path
from types import TracebackType
from typing import Any

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from solar_crawl.common.constants import USER_AGENT
from solar_crawl.common.errors import StageError
from solar_crawl.common.fs import ensure_dir
from solar_crawl.common.logging import log_event

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 15.0
    read: float = 15.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 1
    multiplier: float = 1.0
    max_wait: float = 30.0


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    pass


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        headers: dict[str, str] | None = None,
        cookie_file: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.default_headers = dict(headers or {})
        self.cookie_file = cookie_file
        self.logger = logger or logging.getLogger(__name__)
        self.session = requests.Session()
        if cookie_file is not None:
            self.session.cookies = self._load_cookie_jar(cookie_file)

    @staticmethod
    def _load_cookie_jar(path: Path) -> LWPCookieJar:
        jar = LWPCookieJar(str(path))
        if path.exists():
            try:
                jar.load(ignore_discard=True, ignore_expires=True)
            except (LoadError, OSError):
                jar.clear()
        return jar

    def save_cookies(self) -> None:
        if self.cookie_file is None:
            return
        try:
            ensure_dir(self.cookie_file.parent)
            self.session.cookies.save(ignore_discard=True, ignore_expires=True)
        except OSError as exc:
            log_event(
                self.logger,
                f"could not save cookies to {self.cookie_file}: {exc}",
                level=logging.WARNING,
                stage="fetch",
                event="COOKIE_SAVE_FAIL",
                status="error",
            )

    def close(self) -> None:
        try:
            self.save_cookies()
        finally:
            self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        out.update(self.default_headers)
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status: {status}")
        if status != 200:
            raise HttpRequestError(f"HTTP status: {status}")

    def _post(
        self,
        url: str,
        *,
        payload: dict[str, Any],
        headers: dict[str, str] | None,
        timeout: TimeoutConfig | None,
    ) -> requests.Response:
        req_timeout = timeout or self.timeout
        try:
            response = self.session.request(
                method="POST",
                url=url,
                json=payload,
                headers=self._headers(headers),
                timeout=(req_timeout.connect, req_timeout.read),
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise RetryableHttpError(f"Request to {url} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"Request to {url} failed: {exc}") from exc
        self._raise_for_status_or_retry(response)
        return response

    def _with_retry(self, func):
        return retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )(func)

    def post(
        self,
        url: str,
        *,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> requests.Response:
        """POST a JSON body and return the response; only status 200 is accepted."""

        def _wrapped() -> requests.Response:
            return self._post(url, payload=payload, headers=headers, timeout=timeout)

        return self._with_retry(_wrapped)()

    def post_json(
        self,
        url: str,
        *,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        def _wrapped() -> Any:
            response = self._post(url, payload=payload, headers=headers, timeout=timeout)
            try:
                return response.json()
            except ValueError as exc:
                raise HttpRequestError(f"Invalid JSON payload from {url}") from exc

        return self._with_retry(_wrapped)()
