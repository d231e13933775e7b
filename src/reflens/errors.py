"""Exception types for reflens."""

from __future__ import annotations

from typing import Any, Dict, Optional, Union


class ReflensError(Exception):
    """Base class for all reflens errors."""


class ConfigError(ReflensError):
    """Raised when configuration cannot be loaded or is invalid."""


class InvalidSearchRequest(ReflensError):
    """Raised for malformed queries (missing term/directory, unknown root).

    Carries the short ``error`` label and a ``details`` payload that the HTTP
    layer returns verbatim in its 400 response.
    """

    def __init__(
        self,
        error: str,
        details: Optional[Union[str, Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(error if details is None else f"{error}: {details}")
        self.error = error
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ToolUnavailableError(ReflensError):
    """Raised when an external search tool cannot be located or spawned."""

    def __init__(self, tool: str, reason: str = "executable not found") -> None:
        super().__init__(f"{tool}: {reason}")
        self.tool = tool
        self.reason = reason


class NoAvailablePortError(ReflensError):
    """Raised when no port in the scanned range could be bound."""

    def __init__(self, start_port: int, end_port: int) -> None:
        super().__init__(f"No available ports found between {start_port} and {end_port}")
        self.start_port = start_port
        self.end_port = end_port
