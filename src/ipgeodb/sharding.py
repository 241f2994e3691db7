"""Utilities for splitting the global range list into /8 octet chunks."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Tuple

from .compiler import merge_adjacent
from .constants import OCTET_COUNT, OCTET_SPAN
from .models import Range


def octet_of(value: int) -> int:
    return (value >> 24) & 0xFF


def octet_bounds(octet: int) -> Tuple[int, int]:
    """Return the inclusive address block ``[a.0.0.0, a.255.255.255]``."""

    if not 0 <= octet < OCTET_COUNT:
        raise ValueError(f"Octet out of range: {octet}")
    low = octet << 24
    return low, low | OCTET_SPAN


def clip_to_octets(item: Range) -> Iterator[Tuple[int, Range]]:
    """Yield ``(octet, sub_range)`` pairs covering *item* exactly once."""

    for octet in range(octet_of(item.start), octet_of(item.end) + 1):
        low, high = octet_bounds(octet)
        start = max(item.start, low)
        end = min(item.end, high)
        if start <= end:
            yield octet, Range(start, end, item.triple)


def shard_ranges(ranges: Iterable[Range]) -> List[List[Range]]:
    """Split *ranges* into 256 buckets keyed by top octet, each sorted and merged."""

    buckets: List[List[Range]] = [[] for _ in range(OCTET_COUNT)]
    for item in ranges:
        for octet, sub_range in clip_to_octets(item):
            buckets[octet].append(sub_range)

    return [merge_adjacent(sorted(bucket, key=lambda r: r.start)) for bucket in buckets]
