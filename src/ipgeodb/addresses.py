"""Dotted-quad IPv4 helpers shared by the compiler and the lookup engine."""

from __future__ import annotations

from .constants import MAX_IPV4

_MAX_OCTET_DIGITS = 3


def parse_ipv4(text: str) -> int | None:
    """
    Parse a dotted-quad IPv4 address into its big-endian integer value.

    Exactly four dot-separated decimal octets in ``0..255`` are accepted.
    Anything else (signs, whitespace inside, hex, IPv6, extra parts,
    octets longer than three digits) returns ``None``.
    """
    if not isinstance(text, str):
        return None

    parts = text.strip().split(".")
    if len(parts) != 4:
        return None

    value = 0
    for part in parts:
        if not part or len(part) > _MAX_OCTET_DIGITS:
            return None
        if not part.isascii() or not part.isdigit():
            return None
        octet = int(part)
        if octet > 255:
            return None
        value = (value << 8) | octet
    return value


def int_to_ip(value: int) -> str:
    if not 0 <= value <= MAX_IPV4:
        raise ValueError(f"IPv4 value out of range: {value}")
    return ".".join(str((value >> shift) & 0xFF) for shift in (24, 16, 8, 0))
