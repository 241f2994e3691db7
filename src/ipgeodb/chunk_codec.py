"""
Octet chunk codec.

Layout (little-endian)::

    "IPCH" | version:u8 | record_count:u32
    record_count x (varint delta_start, varint length, triple:u16)

``delta_start`` is relative to the previous record's start (0 for the
first record) and ``length`` is ``end - start``. Records can only be
reconstructed sequentially.
"""

from __future__ import annotations

import logging
import struct
from typing import Iterable, List

from .constants import CHUNK_MAGIC, CHUNK_VERSION, KNOWN_CHUNK_VERSIONS, MAX_IPV4
from .models import Range
from .varint import VarintError, decode_varint, encode_varint

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<4sBI")
_TRIPLE = struct.Struct("<H")


def encode_chunk(records: Iterable[Range], version: int = CHUNK_VERSION) -> bytes:
    """
    Serialize sorted, non-overlapping *records*.

    Raises:
        ValueError: If records are out of order, overlap, or carry a triple
            index that does not fit in 16 bits.
    """
    records = list(records)
    out = bytearray(_HEADER.pack(CHUNK_MAGIC, version, len(records)))
    previous_start = 0
    previous_end = -1
    for record in records:
        if record.start <= previous_end or record.end < record.start:
            raise ValueError(f"Chunk records must be sorted and non-overlapping: {record}")
        if not 0 <= record.triple <= 0xFFFF:
            raise ValueError(f"Triple index does not fit in 16 bits: {record.triple}")
        out += encode_varint(record.start - previous_start)
        out += encode_varint(record.end - record.start)
        out += _TRIPLE.pack(record.triple)
        previous_start = record.start
        previous_end = record.end
    return bytes(out)


def decode_chunk(data: bytes | None, *, strict_version: bool = False) -> List[Range]:
    """
    Decode a chunk artifact into its ascending record list.

    A missing payload, bad magic, truncated body or (with *strict_version*)
    an unknown version all decode to ``[]``.
    """
    if not data or len(data) < _HEADER.size:
        return []

    magic, version, count = _HEADER.unpack_from(data, 0)
    if magic != CHUNK_MAGIC:
        logger.warning("Chunk magic mismatch (%r); treating chunk as empty", magic)
        return []
    if strict_version and version not in KNOWN_CHUNK_VERSIONS:
        logger.warning("Unsupported chunk version %d; treating chunk as empty", version)
        return []

    records: List[Range] = []
    offset = _HEADER.size
    previous_start = 0
    try:
        for _ in range(count):
            delta, offset = decode_varint(data, offset)
            length, offset = decode_varint(data, offset)
            if offset + _TRIPLE.size > len(data):
                raise VarintError("Truncated triple index")
            (triple,) = _TRIPLE.unpack_from(data, offset)
            offset += _TRIPLE.size

            start = previous_start + delta
            end = start + length
            if end > MAX_IPV4:
                raise VarintError(f"Record past end of address space at offset {offset}")
            records.append(Range(start, end, triple))
            previous_start = start
    except VarintError as exc:
        logger.warning("Corrupt chunk payload (%s); treating chunk as empty", exc)
        return []

    return records
