from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from rich.progress import Progress

from .artifacts import write_artifacts
from .chunk_codec import encode_chunk
from .compiler import compile_ranges
from .constants import ARTIFACT_FORMATS
from .cli_errors import ConfigError, DataError
from .dict_codec import encode_dictionary
from .sharding import shard_ranges
from .sources import SourceProvider

logger = logging.getLogger(__name__)

PipelineResult = Dict[str, Any]


async def run_build_pipeline(
    provider: SourceProvider,
    output_dir: str | Path,
    progress: Optional[Progress] = None,
    *,
    fmt: str = "bin",
    write_empty_chunks: bool = False,
) -> PipelineResult:
    """
    Build a database: read source rows, compile, shard, encode and write.

    Nothing is written unless every earlier phase succeeded. Errors from the
    provider (``SourceFetchError``, ``FileError``) and the compiler
    (``CompileError``) propagate to the caller.

    Returns:
        ``{"success", "stats", "metrics", "output_dir", "manifest"}``
    """
    if fmt not in ARTIFACT_FORMATS:
        raise ConfigError(f"Unsupported artifact format: {fmt}")

    task = progress.add_task("Building database", total=4) if progress else None

    def _advance(description: str) -> None:
        if progress is not None and task is not None:
            progress.update(task, advance=1, description=description)

    metrics: Dict[str, float] = {}
    started = time.perf_counter()

    logger.info("Reading source rows from %s", provider.describe())
    phase = time.perf_counter()
    lines = await provider.read_lines()
    metrics["read_seconds"] = time.perf_counter() - phase
    if not lines:
        raise DataError(f"Source {provider.describe()} produced no rows")
    _advance("Compiling ranges")

    phase = time.perf_counter()
    dataset = compile_ranges(lines)
    if not dataset.ranges:
        raise DataError("No usable rows in source dataset")
    metrics["compile_seconds"] = time.perf_counter() - phase
    _advance("Sharding by octet")

    phase = time.perf_counter()
    buckets = shard_ranges(dataset.ranges)
    metrics["shard_seconds"] = time.perf_counter() - phase
    _advance("Encoding artifacts")

    phase = time.perf_counter()
    dictionary_bytes = encode_dictionary(dataset.dictionary)
    chunk_bytes = {
        octet: encode_chunk(records)
        for octet, records in enumerate(buckets)
        if records or write_empty_chunks
    }
    metrics["encode_seconds"] = time.perf_counter() - phase

    stats = dict(dataset.stats)
    stats.update(
        {
            "chunk_ranges": sum(len(records) for records in buckets),
            "addresses_covered": sum(item.size for item in dataset.ranges),
            "chunks_written": len(chunk_bytes),
            "dict_bytes": len(dictionary_bytes),
            "chunk_bytes": sum(len(payload) for payload in chunk_bytes.values()),
            "per_chunk_records": {
                octet: len(records) for octet, records in enumerate(buckets) if records
            },
        }
    )

    phase = time.perf_counter()
    output_path = Path(output_dir)
    manifest = write_artifacts(output_path, dictionary_bytes, chunk_bytes, fmt=fmt, stats=stats)
    metrics["write_seconds"] = time.perf_counter() - phase
    metrics["total_seconds"] = time.perf_counter() - started
    _advance("Done")

    logger.info(
        "Database built in %.2fs: %d ranges in %d chunks, %d bytes",
        metrics["total_seconds"],
        stats["chunk_ranges"],
        stats["chunks_written"],
        stats["dict_bytes"] + stats["chunk_bytes"],
    )
    return {
        "success": True,
        "stats": stats,
        "metrics": metrics,
        "output_dir": str(output_path),
        "manifest": manifest,
    }
