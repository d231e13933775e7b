"""Configuration system for reflens."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from .errors import ConfigError


# Settings file name inside the data directory
SETTINGS_FILE_NAME = "settings.yaml"

# First port tried by port discovery, and how far upward it scans
DEFAULT_PORT = 3000
DEFAULT_PORT_RANGE = 1000

# Hard wall-clock limit for one external tool invocation (seconds)
DEFAULT_TOOL_TIMEOUT_S = 30.0

log = logging.getLogger(__name__)


def _default_data_dir() -> Path:
    """Get global reflens data directory."""
    env_override = os.getenv("REFLENS_DATA_DIR")
    if env_override:
        return Path(env_override).expanduser()
    return Path.home() / ".reflens"


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute environment variables in configuration values.

    Supports ${ENV_VAR} and ${ENV_VAR:-default} syntax.
    """
    if isinstance(value, str):
        pattern = r"\$\{([^:}]+)(?::-(.*?))?\}"

        def replace_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_var, value)

    if isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


def find_project_config(start_path: Path, file_names: List[str]) -> Optional[Path]:
    """Find the nearest project configuration file at or above start_path.

    Returns the path of the first matching file, or None if the filesystem
    root is reached without a match.
    """
    current = Path(start_path).absolute()

    while True:
        for name in file_names:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current == current.parent:
            return None
        current = current.parent


@dataclass
class Config:
    """Runtime configuration for reflens.

    - excluded_dirs: Directory names never descended into by any strategy.
    - text_extensions: Extensions searched by the external tools and scanner.
    - symbol_extensions: Extensions parsed by the symbol-aware strategy.
    - project_config_files: Files whose presence enables project-wide symbol
      resolution.
    """

    data_dir: Path = field(default_factory=_default_data_dir)
    excluded_dirs: Set[str] = field(default_factory=lambda: {
        # Version control
        ".git", ".svn", ".hg",
        # Node.js
        "node_modules", ".next",
        # Build artifacts
        "dist", "build", "out", "coverage",
        # Python environments & cache
        ".venv", "venv", "__pycache__", ".tox", ".mypy_cache", ".pytest_cache",
        # Package manager caches
        ".cache",
    })
    text_extensions: List[str] = field(default_factory=lambda: [
        ".py", ".pyi", ".ts", ".js", ".tsx", ".jsx",
        ".json", ".html", ".css", ".md", ".yaml", ".yml", ".toml",
    ])
    symbol_extensions: List[str] = field(default_factory=lambda: [".py", ".pyi"])
    project_config_files: List[str] = field(
        default_factory=lambda: ["pyproject.toml", "setup.py", "setup.cfg"]
    )

    # External tools, in the order they are probed
    ripgrep_paths: List[str] = field(default_factory=lambda: [
        "/opt/homebrew/bin/rg",  # Apple Silicon Homebrew
        "/usr/local/bin/rg",  # Intel Homebrew
        "rg",  # System PATH
    ])
    grep_path: str = "grep"
    tool_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S
    probe_timeout_s: float = 5.0

    # Symbol-aware search resolves project-wide usages of matched definitions
    symbol_search: bool = True

    # Service
    host: str = "127.0.0.1"
    default_port: int = DEFAULT_PORT
    port_range: int = DEFAULT_PORT_RANGE
    max_bind_attempts: int = 10
    graceful_timeout_s: float = 5.0

    # Root searched by the terminal interface (None = current directory)
    terminal_root: Optional[Path] = None

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir).expanduser()
        if self.terminal_root is not None:
            self.terminal_root = Path(self.terminal_root).expanduser()
        if self.port_range < 1:
            raise ConfigError(f"port_range must be positive, got {self.port_range}")
        if self.tool_timeout_s <= 0:
            raise ConfigError(f"tool_timeout_s must be positive, got {self.tool_timeout_s}")

    @property
    def settings_path(self) -> Path:
        """Path to the settings file."""
        return self.data_dir / SETTINGS_FILE_NAME

    def load_settings(self, settings_path: Optional[Path] = None) -> None:
        """Load settings from a YAML file if it exists.

        Unknown keys and invalid values are logged and ignored; a file that
        cannot be parsed raises ConfigError.
        """
        path = Path(settings_path) if settings_path is not None else self.settings_path
        if not path.exists():
            if settings_path is not None:
                raise ConfigError(f"Settings file not found: {path}")
            return

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(
                f"Failed to load settings from {path} [{type(exc).__name__}]: {exc}"
            ) from exc

        if not isinstance(raw, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")

        self._apply_settings(_substitute_env_vars(raw), source=str(path))

    def _apply_settings(self, settings: Dict[str, Any], source: str) -> None:
        search = settings.get("search", {}) or {}
        if "excluded_dirs" in search:
            self.excluded_dirs = set(search["excluded_dirs"])
        if "text_extensions" in search:
            self.text_extensions = [_normalize_extension(e) for e in search["text_extensions"]]
        if "symbol_extensions" in search:
            self.symbol_extensions = [_normalize_extension(e) for e in search["symbol_extensions"]]
        if "project_config_files" in search:
            self.project_config_files = list(search["project_config_files"])
        if "symbol_search" in search:
            self.symbol_search = bool(search["symbol_search"])

        tools = settings.get("tools", {}) or {}
        if "ripgrep_paths" in tools:
            self.ripgrep_paths = list(tools["ripgrep_paths"])
        if "grep_path" in tools:
            self.grep_path = str(tools["grep_path"])
        if "timeout_s" in tools:
            self._set_positive_float("tool_timeout_s", tools["timeout_s"], source)

        server = settings.get("server", {}) or {}
        if "host" in server:
            self.host = str(server["host"])
        if "port" in server:
            self._set_port(server["port"], source)
        if "port_range" in server:
            try:
                port_range = int(server["port_range"])
            except (TypeError, ValueError):
                port_range = 0
            if port_range > 0:
                self.port_range = port_range
            else:
                log.warning("Invalid server.port_range in %s: %r", source, server["port_range"])
        if "graceful_timeout_s" in server:
            self._set_positive_float("graceful_timeout_s", server["graceful_timeout_s"], source)

        terminal = settings.get("terminal", {}) or {}
        if terminal.get("root"):
            self.terminal_root = Path(terminal["root"]).expanduser()

    def _set_port(self, value: Any, source: str) -> None:
        try:
            port = int(value)
        except (TypeError, ValueError):
            log.warning("Invalid port in %s: %r", source, value)
            return
        if not 0 < port < 65536:
            log.warning("Port out of range in %s: %r", source, value)
            return
        self.default_port = port

    def _set_positive_float(self, attr: str, value: Any, source: str) -> None:
        try:
            number = float(value)
        except (TypeError, ValueError):
            log.warning("Invalid %s in %s: %r", attr, source, value)
            return
        if number <= 0:
            log.warning("Invalid %s in %s: %r", attr, source, value)
            return
        setattr(self, attr, number)

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides (highest priority).

        Supported variables:
            REFLENS_HOST: Interface the HTTP server binds to
            REFLENS_PORT: First port tried by port discovery
            REFLENS_TOOL_TIMEOUT: External tool timeout in seconds
            REFLENS_ROOT: Root directory searched by the terminal interface
        """
        if "REFLENS_HOST" in os.environ:
            self.host = os.environ["REFLENS_HOST"]
            log.debug("Overriding host from environment: %s", self.host)
        if "REFLENS_PORT" in os.environ:
            self._set_port(os.environ["REFLENS_PORT"], "REFLENS_PORT")
        if "REFLENS_TOOL_TIMEOUT" in os.environ:
            self._set_positive_float(
                "tool_timeout_s", os.environ["REFLENS_TOOL_TIMEOUT"], "REFLENS_TOOL_TIMEOUT"
            )
        if os.environ.get("REFLENS_ROOT"):
            self.terminal_root = Path(os.environ["REFLENS_ROOT"]).expanduser()

    @classmethod
    def load(cls, settings_path: Optional[Path] = None) -> "Config":
        """Load config: defaults, then the settings file, then environment."""
        config = cls()
        if settings_path is None and os.environ.get("REFLENS_SETTINGS"):
            settings_path = Path(os.environ["REFLENS_SETTINGS"]).expanduser()
        config.load_settings(settings_path)
        config.apply_env_overrides()
        return config


def _normalize_extension(ext: str) -> str:
    ext = str(ext).strip()
    return ext if ext.startswith(".") else f".{ext}"
