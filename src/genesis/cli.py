"""genesis CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from genesis.config import DEFAULT_CONFIG_FILE, ConfigError, LoaderConfig, load_config
from genesis.graph.errors import DefinitionError
from genesis.loader.loader import LoadAbortedError, LoadOptions, LoadReport, load
from genesis.observability import close_file_logging, configure_logging
from genesis.script import DefinitionScriptError, build_graph
from genesis.store.memory import InMemoryStore
from genesis.store.riak import RiakHttpStore, parse_store_address

if TYPE_CHECKING:
    from genesis.graph.model import Graph

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="genesis",
    help="genesis: Seed a key-value store from a graph definition script.",
    no_args_is_help=True,
)
console = Console()

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0

ScriptArg = Annotated[
    Path,
    typer.Argument(help="Definition script (.py, .yaml or .yml)."),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v to log every save, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Also write every log event to this file as JSON lines.",
            envvar="GENESIS_LOG_FILE",
        ),
    ] = None,
) -> None:
    """genesis: Seed a key-value store from a graph definition script."""
    global _verbose
    _verbose = verbose

    configure_logging(verbosity=verbose, log_file=log_file)
    if log_file is not None:
        atexit.register(close_file_logging)


def _fatal(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def _build(script: Path) -> Graph:
    """Run the definition script, exiting on any declaration error."""
    try:
        return build_graph(script)
    except (DefinitionScriptError, DefinitionError) as e:
        raise _fatal(str(e)) from None


def _load_config(config_path: Path | None) -> LoaderConfig:
    """Load settings from --config, or ./genesis.yaml when present."""
    if config_path is None and Path(DEFAULT_CONFIG_FILE).is_file():
        config_path = Path(DEFAULT_CONFIG_FILE)
    try:
        return load_config(config_path)
    except ConfigError as e:
        raise _fatal(str(e)) from None


def _print_failures(report: LoadReport) -> None:
    table = Table(title="Store failures")
    table.add_column("Stage", style="cyan")
    table.add_column("Target")
    table.add_column("Error", style="red")
    for failure in report.failures:
        target = failure.collection
        if failure.key is not None:
            target += f"/{failure.key}"
        if failure.variant_index is not None:
            target += f" #{failure.variant_index}"
        table.add_row(failure.stage, escape(target), escape(str(failure.error)))
    console.print(table)


def _print_report(report: LoadReport) -> None:
    console.print()
    if report.failures:
        _print_failures(report)
    if report.timed_out:
        console.print(
            f"[yellow]Timed out:[/yellow] {report.records_skipped} record(s) not started"
        )

    icon = "[green]✓[/green]" if report.ok else "[yellow]![/yellow]"
    console.print(
        f"{icon} Saved {report.variants_saved} variant(s) of {report.records_read} "
        f"record(s) in {report.collections_processed} collection(s); "
        f"{len(report.failures)} failure(s)"
    )


def _open_store(base_url: str) -> RiakHttpStore:
    return RiakHttpStore(base_url)


def _run_load(graph: Graph, base_url: str, options: LoadOptions) -> LoadReport:
    async def _run() -> LoadReport:
        store = _open_store(base_url)
        try:
            return await load(graph, store, options)
        finally:
            await store.aclose()

    return asyncio.run(_run())


@app.command()
def seed(
    address: Annotated[str, typer.Argument(help="Store address, host:port or URL.")],
    script: ScriptArg,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, help="Records in flight per collection."),
    ] = None,
    fail_fast: Annotated[
        bool,
        typer.Option("--fail-fast", help="Abort after the first store failure."),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit with status 1 if any store call failed."),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0.001, help="Stop starting new records after this many seconds."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", help="YAML config file (default: ./genesis.yaml if present)."),
    ] = None,
) -> None:
    """Build the graph from SCRIPT and write it into the store at ADDRESS."""
    config = _load_config(config_path).override(
        concurrency=concurrency,
        fail_fast=fail_fast or None,
        strict=strict or None,
        timeout=timeout,
    )
    try:
        base_url = parse_store_address(address)
    except ValueError as e:
        raise _fatal(str(e)) from None

    graph = _build(script)
    options = config.load_options(verbose=_verbose >= 1)
    console.print(
        f"[dim]Seeding {graph.record_count} record(s) into {escape(base_url)}...[/dim]"
    )

    try:
        report = _run_load(graph, base_url, options)
    except LoadAbortedError as e:
        _print_report(e.report)
        raise _fatal(str(e)) from None

    _print_report(report)
    if config.strict and not report.ok:
        raise typer.Exit(1)


@app.command("dry-run")
def dry_run(script: ScriptArg) -> None:
    """Load SCRIPT into an in-memory store and show what would be written."""
    graph = _build(script)
    store = InMemoryStore()
    report = asyncio.run(load(graph, store, LoadOptions(verbose=_verbose >= 1)))

    table = Table(title="Dry run")
    table.add_column("Collection", style="cyan")
    table.add_column("Key", style="bold")
    table.add_column("Siblings", justify="right")
    table.add_column("Links", justify="right")
    for collection, key in store.keys():
        links = sum(len(group) for group in store.links(collection, key))
        table.add_row(
            escape(collection),
            escape(key),
            str(len(store.values(collection, key))),
            str(links),
        )

    console.print()
    console.print(table)
    for name in store.collections:
        console.print(f"  [dim]configured[/dim] {escape(name)}")
    _print_report(report)


@app.command()
def show(script: ScriptArg) -> None:
    """Print the graph declared by SCRIPT without touching any store."""
    graph = _build(script)

    table = Table(title=f"Graph: {escape(script.name)}")
    table.add_column("Collection", style="cyan")
    table.add_column("Key", style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Payload")
    table.add_column("Links")
    for record in graph.iter_records():
        for index, variant in enumerate(record.variants):
            links = ", ".join(
                f"{link.collection}/{link.key}" + (f" ({link.tag})" if link.tag else "")
                for link in variant.links
            )
            table.add_row(
                escape(record.collection),
                escape(record.key),
                str(index),
                escape(json.dumps(variant.payload, sort_keys=True, default=str)),
                escape(links) or "-",
            )

    console.print()
    console.print(table)
    for collection in graph.collections.values():
        if collection.properties:
            props = json.dumps(collection.properties, sort_keys=True, default=str)
            console.print(f"  [dim]{escape(collection.name)} properties:[/dim] {escape(props)}")
    console.print(
        f"\n{len(graph.collections)} collection(s), {graph.record_count} record(s), "
        f"{graph.variant_count} variant(s), {graph.link_count} link(s)"
    )


@app.command()
def version() -> None:
    """Show version information."""
    from genesis import __version__

    console.print(f"genesis v{__version__}")


if __name__ == "__main__":
    app()
