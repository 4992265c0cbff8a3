"""HTTP client with retries and timeouts for streamed dataset downloads."""

from __future__ import annotations

import io
from contextlib import contextmanager
from dataclasses import dataclass
from types import TracebackType
from typing import Iterator

import requests
import urllib3
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from deprivare.common.config_loader import HttpSettings
from deprivare.common.constants import USER_AGENT
from deprivare.common.errors import DeprivareError

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 120.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 5
    multiplier: float = 1.0
    max_wait: float = 30.0


class HttpRequestError(DeprivareError):
    error_code = "HTTP_ERROR"


class RetryableHttpError(HttpRequestError):
    pass


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()

    @classmethod
    def from_settings(cls, settings: HttpSettings) -> "HttpClient":
        return cls(
            timeout=TimeoutConfig(connect=settings.connect_timeout_seconds, read=settings.read_timeout_seconds),
            retry=RetryConfig(max_attempts=settings.max_attempts, max_wait=settings.max_wait_seconds),
        )

    def close(self) -> None:
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

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT, "Accept": "text/csv, text/plain, */*"}

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            response.close()
            raise RetryableHttpError(f"Retryable HTTP status: {status}")
        if status >= 400:
            response.close()
            raise HttpRequestError(f"HTTP status: {status}")

    def _open(self, url: str) -> requests.Response:
        try:
            response = self.session.request(
                method="GET",
                url=url,
                headers=self._headers(),
                timeout=(self.timeout.connect, self.timeout.read),
                stream=True,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RetryableHttpError(f"Request to {url} failed: {exc}") from exc
        self._raise_for_status_or_retry(response)
        return response

    def open_stream(self, url: str) -> requests.Response:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> requests.Response:
            return self._open(url)

        return _wrapped()

    @contextmanager
    def stream_lines(self, url: str) -> Iterator[io.TextIOWrapper]:
        """Yield the body of ``url`` as a strictly decoded UTF-8 text stream.

        Line endings are passed through untranslated so ``csv`` sees CRLF rows
        and quoted newlines exactly as published. The response is closed on exit.
        """
        response = self.open_stream(url)
        response.raw.decode_content = True
        # utf-8-sig drops a leading byte order mark.
        text = io.TextIOWrapper(response.raw, encoding="utf-8-sig", errors="strict", newline="")
        try:
            yield text
        except (requests.RequestException, urllib3.exceptions.HTTPError) as exc:
            raise HttpRequestError(f"Download from {url} failed: {exc}") from exc
        finally:
            response.close()
