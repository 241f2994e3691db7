"""Shared HTTP client used to download the upstream dataset."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from . import __version__

try:  # pragma: no cover - optional dependency used only when available
    import h2  # noqa: F401
except ModuleNotFoundError:  # pragma: no cover
    HTTP2_AVAILABLE = False
else:  # pragma: no cover
    HTTP2_AVAILABLE = True

DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)
USER_AGENT = f"ipgeodb/{__version__}"


@asynccontextmanager
async def get_client(
    timeout: float | None = None, retries: int = 0
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an AsyncClient that follows redirects and identifies the builder."""

    transport = httpx.AsyncHTTPTransport(retries=retries)
    async with httpx.AsyncClient(
        http2=HTTP2_AVAILABLE,
        timeout=httpx.Timeout(timeout, connect=10.0) if timeout else DEFAULT_TIMEOUT,
        headers={
            "accept": "text/plain, */*",
            "user-agent": USER_AGENT,
        },
        follow_redirects=True,
        transport=transport,
    ) as client:
        yield client
