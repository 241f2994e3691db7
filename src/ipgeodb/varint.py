"""Unsigned LEB128 varints limited to 32-bit values."""

from __future__ import annotations

from typing import Tuple

MAX_VARINT_BYTES = 5
MAX_VARINT_VALUE = 0xFFFFFFFF


class VarintError(ValueError):
    """Raised for truncated, over-long or overflowing varints."""


def encode_varint(value: int) -> bytes:
    if not 0 <= value <= MAX_VARINT_VALUE:
        raise ValueError(f"Varint value out of range: {value}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def decode_varint(data: bytes | memoryview, offset: int) -> Tuple[int, int]:
    """
    Decode one varint starting at *offset*.

    Returns:
        ``(value, next_offset)``

    Raises:
        VarintError: If the input ends mid-value, the value runs past five
            bytes, or it does not fit in 32 bits.
    """
    value = 0
    for i in range(MAX_VARINT_BYTES):
        position = offset + i
        if position >= len(data):
            raise VarintError(f"Truncated varint at offset {offset}")
        byte = data[position]
        value |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            if value > MAX_VARINT_VALUE:
                raise VarintError(f"Varint overflow at offset {offset}")
            return value, position + 1
    raise VarintError(f"Varint longer than {MAX_VARINT_BYTES} bytes at offset {offset}")
