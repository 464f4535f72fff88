"""
Source fetcher for the chunking pipeline.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from docstore.errors import SourceError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    content: bytes
    content_type: str
    final_url: str


class SourceFetcher:
    """
    Fetches raw bytes for a source URL with retries on transient failures.

    ``http``/``https`` go over the network. ``file`` URLs are read from disk
    only when ``allow_file_urls`` is set, which the CLI does and the API does not.
    """

    DEFAULT_HEADERS = {"User-Agent": "docstore/1.0 (Document Ingestion)"}

    MAX_REDIRECTS = 5
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 1.0  # seconds

    def __init__(
        self,
        timeout: float = 30.0,
        max_bytes: int = 50 * 1024 * 1024,
        client: httpx.Client | None = None,
        retry_delay_base: float | None = None,
        allow_file_urls: bool = False,
    ) -> None:
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.allow_file_urls = allow_file_urls
        self.retry_delay_base = self.RETRY_DELAY_BASE if retry_delay_base is None else retry_delay_base
        self.client = client or httpx.Client(
            follow_redirects=True,
            max_redirects=self.MAX_REDIRECTS,
            timeout=timeout,
            headers=self.DEFAULT_HEADERS,
        )

    def check_url(self, url: str) -> None:
        """Reject URLs this fetcher will not read, without touching the source."""
        parsed = urlparse(url)
        if parsed.scheme == "file":
            if not self.allow_file_urls:
                raise ValidationError("file:// sources are not allowed here", details={"url": url})
            return
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Source URL must be http(s): {url}", details={"url": url})

    def fetch(self, url: str) -> FetchResult:
        self.check_url(url)
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return self._read_file(url, Path(unquote(parsed.path)))

        last_error: Exception | None = None
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._download(url)
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                # Don't retry client errors (4xx) other than 429
                if 400 <= status < 500 and status != 429:
                    logger.error("Client error fetching source", extra={"url": url, "status": status})
                    raise SourceError(
                        f"Fetching {url} failed with HTTP {status}", details={"url": url, "status": status}
                    ) from exc
                last_error = exc
            except httpx.HTTPError as exc:
                last_error = exc

            if attempt == self.MAX_RETRIES - 1:
                break
            delay = self.retry_delay_base * (2**attempt)
            logger.warning(f"Attempt {attempt + 1} failed for {url}, retrying in {delay}s: {last_error}")
            time.sleep(delay)

        logger.error("All retries exhausted", extra={"url": url})
        raise SourceError(
            f"Fetching {url} failed after {self.MAX_RETRIES} attempts: {last_error}",
            retryable=True,
            details={"url": url},
        ) from last_error

    def _download(self, url: str) -> FetchResult:
        with self.client.stream("GET", url) as response:
            response.raise_for_status()

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > self.max_bytes:
                raise self._too_large(url, int(declared))

            body = bytearray()
            for chunk in response.iter_bytes():
                body.extend(chunk)
                if len(body) > self.max_bytes:
                    raise self._too_large(url, len(body))

            content_type = response.headers.get("content-type", "application/octet-stream")
            return FetchResult(
                content=bytes(body),
                content_type=content_type.split(";")[0].strip(),
                final_url=str(response.url),
            )

    def _too_large(self, url: str, size: int) -> SourceError:
        return SourceError(
            f"Source {url} is larger than {self.max_bytes} bytes",
            details={"url": url, "size": size},
        )

    def _read_file(self, url: str, path: Path) -> FetchResult:
        try:
            size = path.stat().st_size
            if size > self.max_bytes:
                raise self._too_large(url, size)
            content = path.read_bytes()
        except OSError as exc:
            raise SourceError(f"Reading {url} failed: {exc}", details={"url": url}) from exc
        return FetchResult(content=content, content_type="application/octet-stream", final_url=url)


__all__ = ["SourceFetcher", "FetchResult"]
