"""Interchangeable search strategies."""

from .base import BaseStrategy, StrategyOutcome
from .external import ExternalToolStrategy, GrepBackend, RipgrepBackend, ToolBackend
from .scanner import ScannerStrategy
from .symbol import SymbolStrategy

__all__ = [
    "BaseStrategy",
    "StrategyOutcome",
    "ExternalToolStrategy",
    "ToolBackend",
    "RipgrepBackend",
    "GrepBackend",
    "ScannerStrategy",
    "SymbolStrategy",
]
