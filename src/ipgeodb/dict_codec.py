"""
Dictionary artifact codec.

Layout (little-endian)::

    "IPDC" | version:u8 | string_count:u32 | triple_count:u32
    string_count x (length:u16, utf-8 bytes)
    triple_count x (country:u16, province:u16, city:u16)

A bad magic or a truncated payload decodes to an empty dictionary instead
of raising; lookups against it simply resolve to unknown.
"""

from __future__ import annotations

import logging
import struct

from .constants import DICT_MAGIC, DICT_VERSION, MAX_STRING_BYTES, MAX_TABLE_SIZE
from .models import Dictionary, Triple

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<4sBII")
_LENGTH = struct.Struct("<H")
_TRIPLE = struct.Struct("<HHH")


class _Truncated(Exception):
    pass


def encode_dictionary(dictionary: Dictionary, version: int = DICT_VERSION) -> bytes:
    """Serialize *dictionary*; raises ``ValueError`` if it cannot be represented."""

    if len(dictionary.strings) > MAX_TABLE_SIZE or len(dictionary.triples) > MAX_TABLE_SIZE:
        raise ValueError("Dictionary tables exceed uint16 index space")

    out = bytearray(
        _HEADER.pack(DICT_MAGIC, version, len(dictionary.strings), len(dictionary.triples))
    )
    for value in dictionary.strings:
        encoded = value.encode("utf-8")
        if len(encoded) > MAX_STRING_BYTES:
            raise ValueError(f"String too long for dictionary: {value[:40]!r}...")
        out += _LENGTH.pack(len(encoded))
        out += encoded

    string_count = len(dictionary.strings)
    for triple in dictionary.triples:
        if any(not 0 <= index < string_count for index in triple):
            raise ValueError(f"Triple {triple} references a missing string")
        out += _TRIPLE.pack(*triple)
    return bytes(out)


def decode_dictionary(data: bytes | None) -> Dictionary:
    """Decode a dictionary artifact, degrading to empty on any corruption."""

    if not data or len(data) < _HEADER.size:
        logger.warning("Dictionary artifact missing or too short; using empty dictionary")
        return Dictionary.empty()

    magic, version, string_count, triple_count = _HEADER.unpack_from(data, 0)
    if magic != DICT_MAGIC:
        logger.warning("Dictionary magic mismatch (%r); using empty dictionary", magic)
        return Dictionary.empty()
    logger.debug(
        "Decoding dictionary v%d: %d strings, %d triples", version, string_count, triple_count
    )

    try:
        strings, offset = _read_strings(data, _HEADER.size, string_count)
        triples = _read_triples(data, offset, triple_count)
    except _Truncated:
        logger.warning("Dictionary artifact truncated; using empty dictionary")
        return Dictionary.empty()

    return Dictionary(strings=strings, triples=triples)


def _read_strings(data: bytes, offset: int, count: int) -> tuple[list[str], int]:
    view = memoryview(data)
    strings: list[str] = []
    for _ in range(count):
        if offset + _LENGTH.size > len(data):
            raise _Truncated
        (length,) = _LENGTH.unpack_from(data, offset)
        offset += _LENGTH.size
        if offset + length > len(data):
            raise _Truncated
        strings.append(bytes(view[offset : offset + length]).decode("utf-8", errors="replace"))
        offset += length
    return strings, offset


def _read_triples(data: bytes, offset: int, count: int) -> list[Triple]:
    if offset + count * _TRIPLE.size > len(data):
        raise _Truncated
    return [
        _TRIPLE.unpack_from(data, offset + i * _TRIPLE.size)  # type: ignore[misc]
        for i in range(count)
    ]
