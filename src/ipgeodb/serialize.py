"""Serialization helpers for deterministic JSON outputs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


def dumps(data: Any) -> str:
    return orjson.dumps(
        data,
        option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
    ).decode()


def write_bytes_atomic(path: Path, payload: bytes) -> None:
    """Write *payload* next to *path* and move it into place."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(payload)
    tmp.replace(path)


def dump_to_path(path: Path, data: Any) -> None:
    write_bytes_atomic(path, dumps(data).encode("utf-8"))
