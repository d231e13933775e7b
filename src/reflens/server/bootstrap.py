"""Service bootstrap: tool probing, port discovery, serving and shutdown."""

from __future__ import annotations

import asyncio
import errno
import logging
import signal
import socket
from dataclasses import dataclass
from typing import Callable, Optional

from hypercorn.asyncio import serve as hypercorn_serve
from hypercorn.config import Config as HypercornConfig
from quart import Quart
from rich.console import Console

from reflens.config import Config
from reflens.errors import NoAvailablePortError, ToolUnavailableError
from reflens.search.orchestrator import SearchOrchestrator
from reflens.server.app import create_app
from reflens.strategies.process import run_tool

logger = logging.getLogger(__name__)


@dataclass
class ToolAvailability:
    """Which external search tools answered a ``--version`` probe."""

    ripgrep: bool = False
    grep: bool = False
    ripgrep_path: Optional[str] = None


async def _responds(executable: str, timeout: float) -> bool:
    try:
        output = await run_tool([executable, "--version"], timeout)
    except ToolUnavailableError:
        return False
    return output.returncode == 0


async def probe_search_tools(config: Config) -> ToolAvailability:
    """Check ripgrep (well-known paths, then PATH) and grep.

    The result only drives startup messages; the external strategy runs its
    own fallback chain on every query.
    """
    tools = ToolAvailability()

    for candidate in config.ripgrep_paths:
        if await _responds(candidate, config.probe_timeout_s):
            tools.ripgrep = True
            tools.ripgrep_path = candidate
            logger.info("Found ripgrep at: %s", candidate)
            break

    tools.grep = await _responds(config.grep_path, config.probe_timeout_s)
    if tools.grep:
        logger.info("Found grep")
    else:
        logger.info("Grep not found")

    logger.debug("Available search tools: %s", tools)
    return tools


def _socket_family(host: str) -> socket.AddressFamily:
    return socket.AF_INET6 if ":" in host else socket.AF_INET


def find_available_port(start_port: int, end_port: Optional[int] = None, host: str = "127.0.0.1") -> int:
    """Return the first port in [start_port, end_port) that can be bound.

    Each candidate is bound with a transient socket that is released
    immediately; the caller binds the real listener afterwards.

    Raises:
        NoAvailablePortError: If every port in the range is taken.
    """
    if end_port is None:
        end_port = start_port + 1000

    for port in range(start_port, end_port):
        with socket.socket(_socket_family(host), socket.SOCK_STREAM) as probe:
            try:
                probe.bind((host, port))
            except OSError:
                continue
        return port

    raise NoAvailablePortError(start_port, end_port)


def _bind_listener(host: str, port: int) -> socket.socket:
    sock = socket.socket(_socket_family(host), socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


async def serve(
    app: Quart,
    config: Config,
    shutdown_event: asyncio.Event,
    on_listening: Optional[Callable[[int], None]] = None,
) -> int:
    """Discover a port, bind it and serve app until shutdown_event is set.

    If the discovered port is taken before the listener binds it
    (address in use), discovery starts over, up to ``max_bind_attempts``
    times. Other bind errors propagate.

    Returns:
        The port that was served.

    Raises:
        NoAvailablePortError: If no port could be bound.
        OSError: For bind failures other than address-in-use.
    """
    start_port = config.default_port
    end_port = config.default_port + config.port_range

    for attempt in range(1, config.max_bind_attempts + 1):
        port = find_available_port(start_port, end_port, config.host)
        try:
            listener = _bind_listener(config.host, port)
        except OSError as exc:
            if exc.errno != errno.EADDRINUSE:
                raise
            logger.warning(
                "Port %d is already in use. Trying another port... (attempt %d/%d)",
                port, attempt, config.max_bind_attempts,
            )
            continue

        hypercorn_config = HypercornConfig()
        # Hypercorn takes ownership of the already-bound descriptor
        hypercorn_config.bind = [f"fd://{listener.detach()}"]
        hypercorn_config.graceful_timeout = config.graceful_timeout_s

        logger.info("Serving on http://%s:%d", config.host, port)
        if on_listening is not None:
            on_listening(port)
        await hypercorn_serve(app, hypercorn_config, shutdown_trigger=shutdown_event.wait)
        logger.info("Server shutdown complete")
        return port

    raise NoAvailablePortError(start_port, end_port)


def install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    """Set shutdown_event on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()

    def _handle(signame: str) -> None:
        logger.info("Received %s. Shutting down gracefully...", signame)
        shutdown_event.set()

    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, _handle, sig.name)
        except (NotImplementedError, RuntimeError, ValueError):
            # Signal handling not available (e.g., Windows, not main thread)
            pass


def print_startup_banner(console: Console, port: int, host: str, tools: ToolAvailability) -> None:
    display_host = "localhost" if host in ("127.0.0.1", "0.0.0.0", "::", "::1") else host
    console.print("\n[bold]=== Reference Search Server ===[/bold]")
    console.print(f"Web interface running at http://{display_host}:{port}")
    console.print("Open in your browser to use the web interface")

    console.print("\n[bold]Search Tools Status:[/bold]")
    console.print(f"ripgrep (fastest): {'[green]available[/green]' if tools.ripgrep else '[red]not found[/red]'}")
    console.print(f"grep (fallback): {'[green]available[/green]' if tools.grep else '[red]not found[/red]'}")
    if not tools.ripgrep:
        console.print("\nTip: Install ripgrep for faster searches:")
        console.print("- macOS: brew install ripgrep")
        console.print("- Ubuntu/Debian: sudo apt-get install ripgrep")
        console.print("- Windows: choco install ripgrep")


async def run_service(
    config: Config,
    with_terminal: bool = True,
    console: Optional[Console] = None,
) -> int:
    """Start the HTTP service (and optionally the terminal interface).

    Returns when a shutdown signal arrives or the terminal user types
    ``exit``.

    Returns:
        The port that was served.
    """
    from reflens.terminal import TerminalInterface

    console = console or Console()
    tools = await probe_search_tools(config)
    orchestrator = SearchOrchestrator(config)
    app = create_app(orchestrator)

    shutdown_event = asyncio.Event()
    install_signal_handlers(shutdown_event)

    terminal_task: Optional[asyncio.Task] = None

    def on_listening(port: int) -> None:
        nonlocal terminal_task
        print_startup_banner(console, port, config.host, tools)
        if with_terminal and terminal_task is None:
            console.print("\nTerminal interface is also available below:")
            console.print("=======================================\n")
            terminal = TerminalInterface(
                orchestrator,
                config.terminal_root,
                console=console,
                on_exit=shutdown_event.set,
            )
            terminal_task = asyncio.create_task(terminal.run())

    try:
        return await serve(app, config, shutdown_event, on_listening=on_listening)
    finally:
        if terminal_task is not None and not terminal_task.done():
            terminal_task.cancel()
            try:
                await terminal_task
            except asyncio.CancelledError:
                pass
