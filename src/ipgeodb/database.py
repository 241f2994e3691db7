"""
Lookup engine.

``GeoDatabase`` owns a lazily decoded dictionary and a read-through cache of
decoded octet chunks. Each artifact is decoded at most once per database:
concurrent first loads of the same key wait on a per-key lock instead of
decoding twice. Cached entries never expire; the cache is bounded by one
dictionary plus 256 chunks.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .addresses import parse_ipv4
from .artifacts import ArtifactStore
from .chunk_codec import decode_chunk
from .constants import OCTET_COUNT
from .dict_codec import decode_dictionary
from .models import NOT_FOUND, Dictionary, LookupResult, Range
from .sharding import octet_of

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DICT_KEY = "dict"


class DatabaseClosedError(RuntimeError):
    """Raised when a closed database is used."""


def find_range(records: List[Range], value: int) -> Optional[Range]:
    """Binary-search sorted, non-overlapping *records* for the one holding *value*."""

    low, high = 0, len(records) - 1
    while low <= high:
        mid = (low + high) // 2
        record = records[mid]
        if record.contains(value):
            return record
        if value < record.start:
            high = mid - 1
        else:
            low = mid + 1
    return None


class GeoDatabase:
    """Read-only IPv4 location database backed by an :class:`ArtifactStore`."""

    def __init__(self, store: ArtifactStore, *, strict_chunk_version: bool = False) -> None:
        self.store = store
        self.strict_chunk_version = strict_chunk_version
        self._dictionary: Optional[Dictionary] = None
        self._chunks: Dict[int, List[Range]] = {}
        self._key_locks: Dict[Any, threading.Lock] = {}
        self._guard = threading.Lock()
        self._decodes: Dict[str, int] = {"dict": 0, "chunks": 0}
        self._closed = False

    @classmethod
    def open(
        cls,
        path: Path | str,
        *,
        fmt: str | None = None,
        strict_chunk_version: bool = False,
    ) -> "GeoDatabase":
        store = ArtifactStore(path, fmt)
        if not store.exists():
            logger.warning("No database found at %s; all lookups will be unknown", store.root)
        logger.debug("Opened database at %s (format=%s)", store.root, store.fmt)
        return cls(store, strict_chunk_version=strict_chunk_version)

    def close(self) -> None:
        with self._guard:
            self._closed = True
            self._dictionary = None
            self._chunks.clear()
            self._key_locks.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "GeoDatabase":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseClosedError("Database is closed")

    def _lock_for(self, key: Any) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _load_once(self, key: Any, cached: Callable[[], Optional[T]], load: Callable[[], T]) -> T:
        value = cached()
        if value is not None:
            return value
        with self._lock_for(key):
            value = cached()
            if value is None:
                value = load()
            return value

    @property
    def dictionary(self) -> Dictionary:
        self._check_open()
        return self._load_once(_DICT_KEY, lambda: self._dictionary, self._load_dictionary)

    def _load_dictionary(self) -> Dictionary:
        dictionary = decode_dictionary(self.store.read_dictionary())
        with self._guard:
            self._decodes["dict"] += 1
        logger.debug(
            "Loaded dictionary: %d strings, %d triples",
            len(dictionary.strings),
            len(dictionary.triples),
        )
        self._dictionary = dictionary
        return dictionary

    def chunk(self, octet: int) -> List[Range]:
        self._check_open()
        if not 0 <= octet < OCTET_COUNT:
            raise ValueError(f"Octet out of range: {octet}")
        return self._load_once(
            octet, lambda: self._chunks.get(octet), lambda: self._load_chunk(octet)
        )

    def _load_chunk(self, octet: int) -> List[Range]:
        payload = self.store.read_chunk(octet)
        if payload is None:
            logger.debug("No chunk file for octet %d", octet)
        records = decode_chunk(payload, strict_version=self.strict_chunk_version)
        with self._guard:
            self._decodes["chunks"] += 1
        self._chunks[octet] = records
        return records

    def lookup(self, ip: str) -> LookupResult:
        """
        Resolve *ip* to its location.

        Invalid input, missing artifacts and corrupt tables all resolve to an
        all-``None`` result; this method does not raise for them.
        """
        self._check_open()
        value = parse_ipv4(ip)
        if value is None:
            return NOT_FOUND

        dictionary = self.dictionary
        record = find_range(self.chunk(octet_of(value)), value)
        if record is None:
            return NOT_FOUND
        return dictionary.resolve(record.triple)

    async def lookup_async(self, ip: str) -> LookupResult:
        """Run :meth:`lookup` in the default executor so first loads do not block the loop."""

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.lookup, ip)

    def preload(self) -> int:
        """Decode the dictionary and every chunk; return the number of non-empty chunks."""

        self.dictionary
        return sum(1 for octet in range(OCTET_COUNT) if self.chunk(octet))

    def cache_info(self) -> Dict[str, Any]:
        with self._guard:
            return {
                "dictionary_loaded": self._dictionary is not None,
                "chunks_loaded": sorted(self._chunks),
                "records_cached": sum(len(records) for records in self._chunks.values()),
                "dictionary_decodes": self._decodes["dict"],
                "chunk_decodes": self._decodes["chunks"],
            }
