"""
On-disk artifact layout.

A database directory holds one dictionary and up to 256 chunk files::

    <root>/dict.bin             or  <root>/dict.js
    <root>/chunks/a<N>.bin      or  <root>/chunks/a<N>.js
    <root>/manifest.json

The ``js`` encoding wraps the same bytes in an ES module
(``export const DICT = new Uint8Array([...]);``) so edge functions can
bundle the database as code. Files are always located by name.
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .constants import (
    ARTIFACT_FORMATS,
    BACKUP_DIR,
    CHUNKS_DIR,
    CHUNK_VERSION,
    DICT_STEM,
    DICT_VERSION,
    JS_CHUNK_EXPORT,
    JS_DICT_EXPORT,
    MANIFEST_NAME,
    OCTET_COUNT,
    STAGING_DIR,
)
from .serialize import dump_to_path, write_bytes_atomic

logger = logging.getLogger(__name__)

_JS_ARRAY = re.compile(
    r"export\s+const\s+(?P<name>\w+)\s*=\s*new\s+Uint8Array\(\s*\[(?P<body>[\d,\s]*)\]\s*\)",
)


def dict_path(root: Path, fmt: str) -> Path:
    return root / f"{DICT_STEM}.{fmt}"


def chunk_path(root: Path, octet: int, fmt: str) -> Path:
    return root / CHUNKS_DIR / f"a{octet}.{fmt}"


def wrap_js_module(export_name: str, payload: bytes) -> str:
    return f"export const {export_name} = new Uint8Array([{','.join(map(str, payload))}]);\n"


def unwrap_js_module(text: str, export_name: str | None = None) -> bytes:
    """Extract the byte array exported by a generated module.

    Raises:
        ValueError: If no ``Uint8Array`` export (with *export_name*, when
            given) is present or a value is not a byte.
    """
    for match in _JS_ARRAY.finditer(text):
        if export_name and match.group("name") != export_name:
            continue
        values = [int(item) for item in re.split(r"[\s,]+", match.group("body")) if item]
        return bytes(values)
    raise ValueError(f"No Uint8Array export {export_name or ''} found in module")


def _encode_file(payload: bytes, fmt: str, export_name: str) -> bytes:
    if fmt == "js":
        return wrap_js_module(export_name, payload).encode("ascii")
    return payload


def write_artifacts(
    root: Path,
    dictionary: bytes,
    chunks: Mapping[int, bytes],
    *,
    fmt: str = "bin",
    stats: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Write a complete database to *root* and return its manifest.

    Everything lands in a staging directory inside *root* first. Only the
    entries a build owns (``dict.*``, ``chunks/``, ``manifest.json``) are
    then swapped in, so a failure never leaves a half-written database and
    unrelated files in *root* are kept.
    """
    if fmt not in ARTIFACT_FORMATS:
        raise ValueError(f"Unsupported artifact format: {fmt}")

    root = Path(root).resolve()
    created = not root.exists()
    staging = root / STAGING_DIR
    if staging.exists():
        shutil.rmtree(staging)
    (staging / CHUNKS_DIR).mkdir(parents=True)

    files: Dict[str, Dict[str, Any]] = {}

    def _write(path: Path, payload: bytes, export_name: str) -> None:
        content = _encode_file(payload, fmt, export_name)
        write_bytes_atomic(path, content)
        files[path.relative_to(staging).as_posix()] = {
            "bytes": len(content),
            "payload_bytes": len(payload),
            "sha256": hashlib.sha256(content).hexdigest(),
        }

    try:
        _write(dict_path(staging, fmt), dictionary, JS_DICT_EXPORT)
        for octet in sorted(chunks):
            _write(chunk_path(staging, octet, fmt), chunks[octet], JS_CHUNK_EXPORT)

        manifest = {
            "format": fmt,
            "dict_version": DICT_VERSION,
            "chunk_version": CHUNK_VERSION,
            "chunks": sorted(chunks),
            "files": files,
            "stats": stats or {},
        }
        dump_to_path(staging / MANIFEST_NAME, manifest)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        if created:
            shutil.rmtree(root, ignore_errors=True)
        raise

    _swap_into_place(staging, root)
    total = sum(entry["bytes"] for entry in files.values())
    logger.info("Wrote %d artifact files (%d bytes) to %s", len(files), total, root)
    return manifest


def _owned_entries() -> List[str]:
    return [f"{DICT_STEM}.{fmt}" for fmt in ARTIFACT_FORMATS] + [CHUNKS_DIR, MANIFEST_NAME]


def _swap_into_place(staging: Path, root: Path) -> None:
    backup = root / BACKUP_DIR
    if backup.exists():
        shutil.rmtree(backup)
    backup.mkdir()
    for name in _owned_entries():
        current = root / name
        if current.exists():
            current.replace(backup / name)
    for entry in staging.iterdir():
        entry.replace(root / entry.name)
    staging.rmdir()
    shutil.rmtree(backup, ignore_errors=True)


class ArtifactStore:
    """Read-only access to a database directory in either encoding."""

    def __init__(self, root: Path | str, fmt: str | None = None) -> None:
        self.root = Path(root)
        self.fmt = fmt or self.detect_format(self.root)
        if self.fmt not in ARTIFACT_FORMATS:
            raise ValueError(f"Unsupported artifact format: {self.fmt}")

    @staticmethod
    def detect_format(root: Path) -> str:
        for fmt in ARTIFACT_FORMATS:
            if dict_path(root, fmt).exists():
                return fmt
        return ARTIFACT_FORMATS[0]

    def _read(self, path: Path, export_name: str) -> Optional[bytes]:
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None
        if self.fmt == "js":
            try:
                return unwrap_js_module(content.decode("utf-8", errors="replace"), export_name)
            except ValueError as exc:
                logger.warning("Unreadable module %s: %s", path, exc)
                return None
        return content

    def read_dictionary(self) -> Optional[bytes]:
        payload = self._read(dict_path(self.root, self.fmt), JS_DICT_EXPORT)
        if payload is None:
            logger.warning("Dictionary artifact not found under %s", self.root)
        return payload

    def read_chunk(self, octet: int) -> Optional[bytes]:
        """Return the raw chunk payload, or ``None`` when the octet has no file."""

        if not 0 <= octet < OCTET_COUNT:
            raise ValueError(f"Octet out of range: {octet}")
        return self._read(chunk_path(self.root, octet, self.fmt), JS_CHUNK_EXPORT)

    def exists(self) -> bool:
        return dict_path(self.root, self.fmt).exists()
