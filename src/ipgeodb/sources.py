"""
Source providers for the build pipeline.

Every provider yields pipe-delimited source lines
(``startIP|endIP|country|province|city|isp``); the compiler does not care
where they came from:

* ``remote``: download the upstream dataset, trying mirrors in order
* ``file``: read one or more local dataset files
* ``artifacts``: decode an existing database directory back into rows,
  e.g. to convert ``bin`` artifacts into ``js`` modules
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .addresses import int_to_ip
from .artifacts import ArtifactStore
from .chunk_codec import decode_chunk
from .cli_errors import ConfigError, FileError
from .config import AppSettings
from .constants import OCTET_COUNT
from .dict_codec import decode_dictionary
from .fetcher import fetch_dataset

logger = logging.getLogger(__name__)

SOURCE_KINDS = ("remote", "file", "artifacts")


class SourceProvider(Protocol):
    def describe(self) -> str: ...

    async def read_lines(self) -> List[str]: ...


class RemoteDatasetSource:
    """Download the dataset from the first mirror that answers."""

    def __init__(
        self,
        urls: Sequence[str],
        *,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.urls = list(urls)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def describe(self) -> str:
        return f"remote ({len(self.urls)} mirrors)"

    async def read_lines(self) -> List[str]:
        result = await fetch_dataset(
            self.urls,
            timeout=self.timeout,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        return result.text.splitlines()


class LocalFileSource:
    """Concatenate the lines of one or more local dataset files, in order."""

    def __init__(self, paths: Sequence[Path | str]) -> None:
        self.paths = [Path(path) for path in paths]

    def describe(self) -> str:
        return "file (" + ", ".join(str(path) for path in self.paths) + ")"

    async def read_lines(self) -> List[str]:
        lines: List[str] = []
        for path in self.paths:
            if not path.is_file():
                raise FileError(f"Dataset file not found: {path}")
            logger.debug("Reading dataset file %s", path)
            lines.extend(path.read_text(encoding="utf-8", errors="replace").splitlines())
        return lines


class ArtifactSource:
    """Re-emit the rows encoded in an existing database directory."""

    def __init__(self, root: Path | str, fmt: Optional[str] = None) -> None:
        self.root = Path(root)
        self.fmt = fmt

    def describe(self) -> str:
        return f"artifacts ({self.root})"

    async def read_lines(self) -> List[str]:
        store = ArtifactStore(self.root, self.fmt)
        if not store.exists():
            raise FileError(f"No database found at {self.root}")

        dictionary = decode_dictionary(store.read_dictionary())
        if not dictionary.triples:
            raise FileError(f"Dictionary at {self.root} is empty or unreadable")

        lines: List[str] = []
        for octet in range(OCTET_COUNT):
            for record in decode_chunk(store.read_chunk(octet)):
                country, province, city = (
                    dictionary.string(index) or "0" for index in dictionary.triple(record.triple)
                )
                lines.append(
                    f"{int_to_ip(record.start)}|{int_to_ip(record.end)}"
                    f"|{country}|{province}|{city}|0"
                )
        logger.info("Recovered %d rows from %s", len(lines), self.root)
        return lines


def provider_for(
    kind: str,
    locations: Sequence[str] = (),
    settings: AppSettings | None = None,
) -> SourceProvider:
    """Build the provider selected by *kind*; *locations* are URLs or paths."""

    settings = settings or AppSettings()
    if kind == "remote":
        return RemoteDatasetSource(
            list(locations) or settings.SOURCE_URLS,
            timeout=settings.FETCH_TIMEOUT,
            max_retries=settings.FETCH_MAX_RETRIES,
            retry_delay=settings.FETCH_RETRY_DELAY,
        )
    if kind == "file":
        if not locations:
            raise ConfigError("The file source needs at least one dataset path")
        return LocalFileSource(locations)
    if kind == "artifacts":
        if len(locations) != 1:
            raise ConfigError("The artifacts source needs exactly one database directory")
        return ArtifactSource(locations[0])
    raise ConfigError(f"Unknown source kind: {kind} (expected one of {', '.join(SOURCE_KINDS)})")
