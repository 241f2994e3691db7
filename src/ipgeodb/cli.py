from __future__ import annotations

import asyncio
from typing import Sequence

import click
from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from . import __version__, pipeline
from .cli_errors import FileError, handle_cli_errors
from .config import AppSettings
from .constants import ARTIFACT_FORMATS, OCTET_COUNT
from .database import GeoDatabase
from .logging_config import setup_logging
from .serialize import dumps
from .sources import SOURCE_KINDS, provider_for

console = Console()
config = AppSettings()


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
def cli(log_level: str | None) -> None:
    """
    ipgeodb: octet-sharded IPv4 geolocation database.
    """
    setup_logging(log_level or config.LOG_LEVEL, log_file=config.LOG_FILE or None)


def _display_stats(result: dict) -> None:
    stats = result.get("stats") or {}
    metrics = result.get("metrics") or {}
    console.print("\n[cyan]Build statistics[/cyan]")
    console.print(f"- Source lines: {stats.get('source_lines', 0)}")
    console.print(f"- Skipped rows: {stats.get('skipped_rows', 0)}")
    console.print(f"- Strings: {stats.get('strings', 0)}")
    console.print(f"- Triples: {stats.get('triples', 0)}")
    console.print(f"- Global ranges: {stats.get('ranges', 0)}")
    console.print(f"- Chunk ranges: {stats.get('chunk_ranges', 0)}")
    console.print(f"- Addresses covered: {stats.get('addresses_covered', 0)}")
    console.print(f"- Chunks written: {stats.get('chunks_written', 0)}")
    console.print(
        f"- Bytes: {stats.get('dict_bytes', 0)} dictionary + {stats.get('chunk_bytes', 0)} chunks"
    )
    if metrics:
        console.print(f"- Total time: {metrics.get('total_seconds', 0):.2f}s")


@cli.command()
@click.option(
    "--source-kind",
    type=click.Choice(SOURCE_KINDS),
    default="remote",
    show_default=True,
    help="Where source rows come from.",
)
@click.option(
    "--source",
    "sources",
    multiple=True,
    help="Dataset URL(s), dataset file(s), or an existing database directory.",
)
@click.option("--output", "output_dir", default=None, type=click.Path(file_okay=False))
@click.option(
    "--format", "fmt", type=click.Choice(ARTIFACT_FORMATS), default=None, help="Artifact encoding."
)
@click.option(
    "--write-empty-chunks/--skip-empty-chunks",
    default=None,
    help="Write all 256 chunk files even when empty.",
)
@click.option("--show-metrics", is_flag=True)
@handle_cli_errors(context="Build")
def build(
    source_kind: str,
    sources: Sequence[str],
    output_dir: str | None,
    fmt: str | None,
    write_empty_chunks: bool | None,
    show_metrics: bool,
) -> None:
    """Compile a source dataset into dictionary and chunk artifacts."""
    provider = provider_for(source_kind, sources, config)
    output_dir = output_dir or config.DATA_DIR
    fmt = fmt or config.ARTIFACT_FORMAT
    if write_empty_chunks is None:
        write_empty_chunks = config.WRITE_EMPTY_CHUNKS

    with Progress(console=console, transient=True) as progress:
        result = asyncio.run(
            pipeline.run_build_pipeline(
                provider,
                output_dir,
                progress,
                fmt=fmt,
                write_empty_chunks=write_empty_chunks,
            )
        )

    click.echo("Database built successfully!")
    click.echo(f"Artifacts saved to: {result['output_dir']}")
    if show_metrics:
        _display_stats(result)


def _open_database(db_path: str | None) -> GeoDatabase:
    database = GeoDatabase.open(
        db_path or config.DATA_DIR, strict_chunk_version=config.STRICT_CHUNK_VERSION
    )
    if not database.store.exists():
        raise FileError(f"No database found at {database.store.root}")
    return database


@cli.command()
@click.argument("ips", nargs=-1, required=True)
@click.option("--db", "db_path", default=None, type=click.Path(file_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON.")
@handle_cli_errors(context="Lookup")
def lookup(ips: Sequence[str], db_path: str | None, as_json: bool) -> None:
    """Resolve one or more IPv4 addresses."""
    with _open_database(db_path) as database:
        results = [(ip, database.lookup(ip)) for ip in ips]

    if as_json:
        click.echo(dumps([{"ip": ip, **result.to_dict()} for ip, result in results]))
        return

    table = Table(title="Lookup results")
    for column in ("IP", "Country", "Province", "City"):
        table.add_column(column)
    for ip, result in results:
        table.add_row(ip, result.country or "-", result.province or "-", result.city or "-")
    console.print(table)
    resolved = sum(1 for _, result in results if result.found)
    console.print(f"Resolved {resolved}/{len(results)} addresses")


@cli.command()
@click.option("--db", "db_path", default=None, type=click.Path(file_okay=False))
@click.option("--chunks", "show_chunks", is_flag=True, help="List every non-empty chunk.")
@handle_cli_errors(context="Inspect")
def inspect(db_path: str | None, show_chunks: bool) -> None:
    """Summarize a built database."""
    with _open_database(db_path) as database:
        dictionary = database.dictionary
        counts = {octet: len(database.chunk(octet)) for octet in range(OCTET_COUNT)}

    non_empty = {octet: count for octet, count in counts.items() if count}
    console.print(f"Database: {database.store.root} (format={database.store.fmt})")
    console.print(f"- Strings: {len(dictionary.strings)}")
    console.print(f"- Triples: {len(dictionary.triples)}")
    console.print(f"- Non-empty chunks: {len(non_empty)}/{OCTET_COUNT}")
    console.print(f"- Records: {sum(non_empty.values())}")

    if show_chunks and non_empty:
        table = Table(title="Chunks")
        table.add_column("Octet", justify="right")
        table.add_column("Records", justify="right")
        for octet, count in non_empty.items():
            table.add_row(str(octet), str(count))
        console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":  # pragma: no cover - module execution convenience
    main()
