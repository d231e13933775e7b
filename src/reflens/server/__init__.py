"""HTTP service for reference search."""

from .app import create_app
from .bootstrap import (
    ToolAvailability,
    find_available_port,
    probe_search_tools,
    run_service,
    serve,
)

__all__ = [
    "create_app",
    "ToolAvailability",
    "find_available_port",
    "probe_search_tools",
    "run_service",
    "serve",
]
