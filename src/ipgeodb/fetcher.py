"""
Upstream dataset download with retries and mirror fallback.

Each mirror is retried with exponential backoff; the first mirror that
returns a non-empty body wins. If every mirror fails the build must stop,
so :func:`fetch_dataset` raises :class:`SourceFetchError` rather than
returning an empty dataset.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Sequence
from urllib.parse import urlparse

import httpx

from .cli_errors import NetworkError
from .http_client import get_client

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """A single download attempt failed"""


class RateLimitError(FetcherError):
    """Raised when rate limiting is detected"""

    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        message = (
            f"Rate limited. Retry after {retry_after:.1f} seconds"
            if retry_after is not None
            else "Rate limited. Retry later"
        )
        super().__init__(message)


class SourceFetchError(NetworkError):
    """No mirror produced the upstream dataset."""


class FetchResult:
    """Container for fetch results with metadata"""

    def __init__(
        self,
        source: str,
        text: str,
        success: bool,
        error: str | None = None,
        response_time: float | None = None,
        status_code: int | None = None,
    ):
        self.source = source
        self.text = text
        self.success = success
        self.error = error
        self.response_time = response_time
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "bytes": len(self.text),
            "success": self.success,
            "error": self.error,
            "response_time": self.response_time,
            "status_code": self.status_code,
        }


async def fetch_from_source(
    client: Any,
    source: str,
    timeout: float = 60,
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> FetchResult:
    """
    Download one dataset URL.

    Args:
        client: ``httpx.AsyncClient`` (or compatible) used for the request
        source: URL of the pipe-delimited dataset
        timeout: Per-request timeout in seconds
        max_retries: Number of attempts before giving up
        retry_delay: Initial delay between retries (exponential backoff)

    Returns:
        FetchResult with the body text on success, or the last error.
    """
    parsed_url = urlparse(source)
    if parsed_url.scheme not in ("http", "https") or not parsed_url.netloc:
        logger.error("Invalid dataset URL: %s", source)
        return FetchResult(source, "", False, error=f"Invalid URL format: {source}")

    last_error: str | None = None
    backoff = retry_delay
    loop = asyncio.get_running_loop()

    for attempt in range(max_retries):
        start_time = loop.time()
        try:
            logger.debug("Attempt %d/%d for %s", attempt + 1, max_retries, source)
            response = await client.get(source, timeout=timeout)
            response_time = loop.time() - start_time
            status_code = response.status_code

            if status_code == 429:
                retry_after = _parse_retry_after_header(response.headers.get("Retry-After"))
                raise RateLimitError(retry_after)
            if 500 <= status_code < 600:
                raise FetcherError(f"Server error: {status_code}")
            if status_code >= 400:
                raise FetcherError(f"HTTP error: {status_code}")

            text = response.text
            if not text or not text.strip():
                raise FetcherError("Empty response body")

            logger.info(
                "Fetched %d bytes from %s (Status: %d, Time: %.2fs)",
                len(text),
                source,
                status_code,
                response_time,
            )
            return FetchResult(
                source=source,
                text=text,
                success=True,
                response_time=response_time,
                status_code=status_code,
            )

        except RateLimitError as e:
            last_error = str(e)
            delay = e.retry_after if e.retry_after and e.retry_after > 0 else min(backoff, 60)
            logger.warning(
                "Rate limit hit for %s; retrying in %.1fs (attempt %d/%d)",
                source,
                delay,
                attempt + 1,
                max_retries,
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(delay + random.uniform(0, 0.5))
                backoff = min(backoff * 2, 60)
            continue
        except httpx.TimeoutException:
            last_error = f"Timeout after {timeout} seconds"
            logger.warning("Timeout fetching %s (attempt %d/%d)", source, attempt + 1, max_retries)
        except FetcherError as e:
            last_error = str(e)
            logger.warning("Error fetching %s: %s", source, e)
        except httpx.HTTPError as e:
            last_error = f"HTTP error: {e}"
            logger.warning("HTTP error fetching %s: %s", source, e)

        if attempt < max_retries - 1:
            delay = min(backoff, 30)
            jitter = random.uniform(0, 0.3)
            logger.debug("Waiting %.1fs before retrying %s", delay + jitter, source)
            await asyncio.sleep(delay + jitter)
            backoff = min(backoff * 2, 60)

    logger.error(
        "Failed to fetch %s after %d attempts. Last error: %s", source, max_retries, last_error
    )
    return FetchResult(source=source, text="", success=False, error=last_error)


def _parse_retry_after_header(header_value: str | None) -> float | None:
    """Parse an HTTP Retry-After header into seconds."""

    if not header_value:
        return None

    header_value = header_value.strip()
    if not header_value:
        return None

    try:
        return max(float(header_value), 0.0)
    except ValueError:
        pass

    try:
        parsed = parsedate_to_datetime(header_value)
    except (TypeError, ValueError):
        return None

    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    now = datetime.now(tz=parsed.tzinfo)
    delta = (parsed - now).total_seconds()
    return max(delta, 0.0)


async def fetch_dataset(
    urls: Sequence[str],
    *,
    timeout: float = 60,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    client: httpx.AsyncClient | None = None,
) -> FetchResult:
    """
    Try each mirror in order and return the first successful download.

    Raises:
        SourceFetchError: If no URLs are given or every mirror fails.
    """
    if not urls:
        raise SourceFetchError("No dataset URLs configured")

    errors: list[str] = []

    async def _try_all(http_client: Any) -> FetchResult | None:
        for url in urls:
            result = await fetch_from_source(
                http_client, url, timeout=timeout, max_retries=max_retries, retry_delay=retry_delay
            )
            if result.success:
                return result
            errors.append(f"{url}: {result.error}")
            logger.warning("Mirror failed, trying next: %s", url)
        return None

    if client is not None:
        result = await _try_all(client)
    else:
        async with get_client(timeout=timeout) as new_client:
            result = await _try_all(new_client)

    if result is None:
        raise SourceFetchError("All dataset mirrors failed: " + "; ".join(errors))
    return result
