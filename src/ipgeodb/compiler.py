"""
Range compiler: turns pipe-delimited source rows into interned, merged ranges.

Source rows look like ``startIP|endIP|country|province|city|isp...``. Only the
first five fields are consumed. Blank lines, ``#`` comments, rows with fewer
than six fields and rows whose addresses do not parse are skipped and counted.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .addresses import parse_ipv4
from .cli_errors import DataError
from .constants import MIN_SOURCE_FIELDS, UNKNOWN_FIELD_VALUES
from .interner import Interner
from .models import CompiledDataset, Range, SourceRow

logger = logging.getLogger(__name__)


class CompileError(DataError):
    """Raised when the source rows cannot form a consistent range table."""


def normalize_field(value: str | None) -> str:
    """Map the dataset's "unknown" markers (``0`` or empty) to ``""``."""

    if value is None:
        return ""
    value = value.strip()
    if value in UNKNOWN_FIELD_VALUES:
        return ""
    return value


def parse_row(line: str, line_number: int | None = None) -> Optional[SourceRow]:
    """
    Parse one source line.

    Returns:
        The parsed row, or ``None`` when the line should be skipped.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    parts = line.split("|")
    if len(parts) < MIN_SOURCE_FIELDS:
        logger.debug("Skipping short row %s: %s", line_number, line[:80])
        return None

    start = parse_ipv4(parts[0])
    end = parse_ipv4(parts[1])
    if start is None or end is None:
        logger.warning("Skipping row %s with malformed address: %s", line_number, line[:80])
        return None
    if start > end:
        logger.warning("Skipping row %s with start after end: %s", line_number, line[:80])
        return None

    return SourceRow(
        start=start,
        end=end,
        country=normalize_field(parts[2]),
        province=normalize_field(parts[3]),
        city=normalize_field(parts[4]),
    )


def merge_adjacent(ranges: Iterable[Range]) -> List[Range]:
    """Coalesce consecutive ranges that touch and share a triple.

    *ranges* must already be sorted by ``start``.
    """
    merged: List[Range] = []
    for item in ranges:
        if merged and merged[-1].touches(item):
            merged[-1] = Range(merged[-1].start, item.end, item.triple)
        else:
            merged.append(item)
    return merged


def compile_ranges(lines: Iterable[str], interner: Interner | None = None) -> CompiledDataset:
    """
    Compile source lines into a dictionary and a globally sorted range list.

    Rows are processed in file order. A row extends the previous output range
    in place when it continues it with the same triple, so the pass is linear.
    The final list is re-sorted by ``start`` since input order is not trusted.

    Raises:
        CompileError: When ranges overlap after sorting.
        DataError: When the string or triple table outgrows uint16 indices.
    """
    interner = interner or Interner()
    ranges: List[Range] = []
    total = 0
    skipped = 0

    for line_number, line in enumerate(lines, start=1):
        total += 1
        row = parse_row(line, line_number)
        if row is None:
            skipped += 1
            continue

        triple = interner.intern_triple(row.country, row.province, row.city)
        current = Range(row.start, row.end, triple)
        if ranges and ranges[-1].touches(current):
            ranges[-1] = Range(ranges[-1].start, current.end, triple)
        else:
            ranges.append(current)

    ranges.sort(key=lambda item: item.start)
    _check_overlaps(ranges)
    # Out-of-order input can leave touching neighbours that only meet after sorting
    ranges = merge_adjacent(ranges)

    dictionary = interner.to_dictionary()
    stats = {
        "source_lines": total,
        "skipped_rows": skipped,
        "strings": len(dictionary.strings),
        "triples": len(dictionary.triples),
        "ranges": len(ranges),
    }
    logger.info(
        "Compiled %d ranges from %d lines (%d skipped), %d strings, %d triples",
        len(ranges),
        total,
        skipped,
        len(dictionary.strings),
        len(dictionary.triples),
    )
    return CompiledDataset(dictionary=dictionary, ranges=ranges, stats=stats)


def _check_overlaps(ranges: List[Range]) -> None:
    for previous, current in zip(ranges, ranges[1:]):
        if current.start <= previous.end:
            raise CompileError(
                f"overlapping ranges: [{previous.start}, {previous.end}] and "
                f"[{current.start}, {current.end}]"
            )
