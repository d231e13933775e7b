"""Command line interface for reflens."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from reflens import __version__
from reflens.config import Config
from reflens.errors import ConfigError, InvalidSearchRequest, NoAvailablePortError
from reflens.search.orchestrator import DEFAULT_STRATEGY, SearchOrchestrator
from reflens.server.bootstrap import probe_search_tools, run_service
from reflens.terminal import render_summary

app = typer.Typer(
    name="reflens",
    help="Find references to a term across a source tree.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _load_config(config_path: Optional[Path]) -> Config:
    try:
        return Config.load(config_path)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Reference search over HTTP, a terminal prompt or one-shot queries."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="First port tried"),
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Directory searched by the terminal prompt"
    ),
    no_terminal: bool = typer.Option(False, "--no-terminal", help="Serve HTTP only"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings file"),
):
    """
    Start the web interface and the terminal prompt.

    Examples:
        reflens serve
        reflens serve --port 8080 --root ~/src/project --no-terminal
    """
    config = _load_config(config_path)
    if host is not None:
        config.host = host
    if port is not None:
        config.default_port = port
    if root is not None:
        config.terminal_root = root.expanduser()

    try:
        asyncio.run(run_service(config, with_terminal=not no_terminal, console=console))
    except NoAvailablePortError as exc:
        logger.error("Failed to start server: %s", exc)
        raise typer.Exit(1) from exc
    except OSError as exc:
        logger.error("Server error: %s", exc)
        raise typer.Exit(1) from exc


@app.command()
def search(
    term: str = typer.Argument(..., help="Term to search for"),
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="Root directory (default: current directory)"
    ),
    strategy: str = typer.Option(DEFAULT_STRATEGY, "--strategy", "-s", help="all, symbol, external or scan"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON result"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings file"),
):
    """
    Run one search and print the results.

    Examples:
        reflens search parse_args
        reflens search Config --dir src --strategy symbol --json
    """
    config = _load_config(config_path)
    orchestrator = SearchOrchestrator(config)
    if directory is None:
        directory = Path.cwd()

    try:
        result = asyncio.run(orchestrator.search(term, str(directory), strategy))
    except InvalidSearchRequest as exc:
        console.print(f"[red]{exc.error}[/red]: {exc.details}")
        raise typer.Exit(1) from exc

    if as_json:
        typer.echo(result.to_json())
        return

    if not result.references:
        console.print(f"[yellow]No references to '{term}' found[/yellow]")
        return

    table = Table(title=f"References: '{term}'")
    table.add_column("File", style="cyan", no_wrap=False)
    table.add_column("Line", style="yellow", justify="right")
    table.add_column("Col", style="yellow", justify="right")
    table.add_column("Match")
    table.add_column("Text", style="white")

    for record in result.references:
        kind = "exact" if record.is_exact_match else "partial"
        if record.is_definition:
            kind = "definition"
        table.add_row(
            escape(record.relative_path),
            str(record.line),
            str(record.column),
            kind,
            escape(record.text[:100]),
        )

    console.print(table)
    render_summary(console, result)


@app.command()
def tools():
    """Report which external search tools are available."""
    config = _load_config(None)
    availability = asyncio.run(probe_search_tools(config))

    table = Table(title="Search tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Status")
    table.add_column("Path", style="dim")
    table.add_row(
        "ripgrep",
        "[green]available[/green]" if availability.ripgrep else "[red]not found[/red]",
        availability.ripgrep_path or "",
    )
    table.add_row(
        "grep",
        "[green]available[/green]" if availability.grep else "[red]not found[/red]",
        config.grep_path if availability.grep else "",
    )
    table.add_row("scan", "[green]built in[/green]", "")
    console.print(table)


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]reflens v{__version__}[/bold cyan]")


if __name__ == "__main__":
    app()
