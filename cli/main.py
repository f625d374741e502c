"""drugcrawl CLI: entry-point for both scans.

Usage:
    python cli/main.py --help

Commands:
    atctree   → crawl the ATC classification tree (JSON file / SQLite)
    drugs     → scrape every drug page (CSV file / SQLite)
    db init   → create the SQLite schema
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from drugcrawl.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, Optional

import typer

from drugcrawl.config import VERSION, settings
from drugcrawl.db import get_connection, init_db
from drugcrawl.errors import CrawlError
from drugcrawl.observability import RunContext, configure_logging
from drugcrawl.pipeline import scan_atc_tree, scan_drugs
from drugcrawl.sinks import CsvSink, JsonTreeSink, SqliteSink, SqliteTreeSink

logger = logging.getLogger("drugcrawl.cli")

app = typer.Typer(
    name="drugcrawl",
    help=(
        "Extract and save information about the drugs and the ATC "
        f"classification from {settings.atc_url}"
    ),
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"drugcrawl {VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    prod: Optional[bool] = typer.Option(
        None, "--prod/--no-prod", help="PRODUCTION mode: save results to the SQLite DB."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", min=1, help="Number of workers to run the drug scan in parallel."
    ),
    tree_workers: Optional[int] = typer.Option(
        None, "--tree-workers", min=0,
        help="Bound the ATC tree crawl to N workers (0 = one thread per child).",
    ),
    csvfile: Optional[Path] = typer.Option(
        None, "--csvfile", help="CSV file where drugs are saved in debug mode."
    ),
    jsonfile: Optional[Path] = typer.Option(
        None, "--jsonfile", help="JSON file where the ATC tree is saved in debug mode."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db-path", help="SQLite database used in production mode."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="DEBUG | INFO | WARNING | ERROR."
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Apply command-line overrides on top of the environment settings."""
    if prod is not None:
        settings.prod = prod
    if workers is not None:
        settings.workers = workers
    if tree_workers is not None:
        settings.tree_workers = tree_workers
    if csvfile is not None:
        settings.csv_file = csvfile
    if jsonfile is not None:
        settings.json_file = jsonfile
    if db_path is not None:
        settings.db_file = str(db_path)
    if log_level is not None:
        settings.log_level = log_level
    configure_logging(settings.log_level)


@contextmanager
def _database() -> Iterator[sqlite3.Connection]:
    conn = get_connection(settings.db_path)
    try:
        init_db(conn)
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------
@app.command("atctree")
def atctree() -> None:
    """Crawl the ATC classification tree and save it."""
    start = time.monotonic()
    ctx = RunContext(logger=logging.getLogger("drugcrawl.atctree"))
    logger.info("Starting ATC classification scan (production: %s)", settings.prod)

    try:
        if settings.prod:
            with _database() as conn, SqliteTreeSink(conn, ctx=ctx) as sink:
                root = scan_atc_tree(settings, sink, ctx)
        else:
            with JsonTreeSink(settings.json_file, ctx=ctx) as sink:
                root = scan_atc_tree(settings, sink, ctx)
    except CrawlError as exc:
        typer.echo(f"[atctree] Error: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[atctree] Saved {root.count()} categories")
    logger.info("Done in %s", timedelta(seconds=time.monotonic() - start))


@app.command("drugs")
def drugs() -> None:
    """Scrape every drug of the catalogue and save it."""
    start = time.monotonic()
    ctx = RunContext(logger=logging.getLogger("drugcrawl.drugs"))
    logger.info(
        "Starting drugs scan (production: %s, workers: %d)",
        settings.prod, settings.workers,
    )

    try:
        if settings.prod:
            with _database() as conn, SqliteSink(
                conn, batch_size=settings.batch_size, ctx=ctx
            ) as sink:
                total = scan_drugs(settings, sink, ctx)
        else:
            with CsvSink(settings.csv_file, ctx=ctx) as sink:
                total = scan_drugs(settings, sink, ctx)
    except CrawlError as exc:
        typer.echo(f"[drugs] Error: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[drugs] Saved {total} drugs")
    logger.info("Done in %s", timedelta(seconds=time.monotonic() - start))


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    try:
        with _database():
            pass
    except CrawlError as exc:
        typer.echo(f"[db init] Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
