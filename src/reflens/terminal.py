"""Interactive terminal prompt running alongside the HTTP service."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, TextIO

from rich.console import Console
from rich.markup import escape

from reflens.entities import EnhancedRecord, SearchResult
from reflens.errors import InvalidSearchRequest
from reflens.search.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)

PROMPT = 'Enter search term (or "exit" to quit): '
EXIT_COMMAND = "exit"


def render_summary(console: Console, result: SearchResult) -> None:
    """Print totals, timing and per-type counts."""
    summary = result.summary
    console.print(
        f"\nFound [bold]{summary.total_matches}[/bold] references "
        f"in [bold]{summary.total_files}[/bold] files"
    )
    console.print(f"Search time: {result.metadata.search_time}ms")
    if summary.definitions is not None:
        console.print(f"Definitions: {summary.definitions}, references: {summary.references}")

    if summary.file_types:
        console.print("\nResults by file type:")
        for file_type, count in summary.file_types.items():
            console.print(f"  {escape(file_type or '(none)')}: {count} matches")


def render_result(console: Console, result: SearchResult) -> None:
    """Print the summary followed by matches grouped per file."""
    render_summary(console, result)

    by_file: Dict[str, List[EnhancedRecord]] = {}
    for record in result.references:
        by_file.setdefault(record.relative_path, []).append(record)

    for relative_path, records in by_file.items():
        console.print(f"\n[cyan]File: {escape(relative_path)}[/cyan]")
        for record in records:
            style = "" if record.is_exact_match else "[dim]"
            end = "" if record.is_exact_match else "[/dim]"
            console.print(f"  {style}Line {record.line}: {escape(record.text)}{end}")


class TerminalInterface:
    """Read search terms from stdin and print results for a fixed root.

    Lines are read on a daemon thread so that a pending read never blocks
    interpreter shutdown. Typing ``exit`` (or closing the input) ends the loop
    and calls ``on_exit``.
    """

    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        root: Optional[Path] = None,
        console: Optional[Console] = None,
        on_exit: Optional[Callable[[], None]] = None,
        input_stream: Optional[TextIO] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.root = Path(root) if root is not None else Path.cwd()
        self.console = console or Console()
        self.on_exit = on_exit
        self.input_stream = input_stream or sys.stdin

    def _read_lines(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Optional[str]]") -> None:
        while True:
            try:
                line = self.input_stream.readline()
            except (OSError, ValueError) as exc:
                logger.debug("Terminal input closed: %s", exc)
                line = ""
            try:
                loop.call_soon_threadsafe(queue.put_nowait, line if line else None)
            except RuntimeError:
                # Event loop already closed
                return
            if not line:
                return

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        reader = threading.Thread(
            target=self._read_lines, args=(loop, queue), name="reflens-terminal", daemon=True
        )
        reader.start()

        try:
            while True:
                self.console.print(PROMPT, end="", markup=False)
                line = await queue.get()
                if line is None:
                    break

                term = line.strip()
                if term.lower() == EXIT_COMMAND:
                    break
                if not term:
                    continue

                await self.handle(term)
        finally:
            self.console.print("\nShutting down...")
            if self.on_exit is not None:
                self.on_exit()

    async def handle(self, term: str) -> Optional[SearchResult]:
        """Search one term and print the outcome; errors are printed, not raised."""
        self.console.print(f'\nSearching for "{escape(term)}" in {escape(str(self.root))}...')
        try:
            result = await self.orchestrator.search(term, str(self.root), "all")
        except InvalidSearchRequest as exc:
            self.console.print(f"[red]Error:[/red] {escape(str(exc))}")
            return None
        except Exception as exc:
            logger.exception("Terminal search failed")
            self.console.print(f"[red]Error:[/red] {escape(str(exc))}")
            return None

        render_result(self.console, result)
        self.console.print()
        return result
