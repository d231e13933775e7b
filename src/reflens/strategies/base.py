"""Base class for search strategies.

Defines the interface that all strategies must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from reflens.entities import AttemptStatus, FallbackAttempt, MatchRecord


@dataclass
class StrategyOutcome:
    """Records produced by one strategy plus the backends it went through."""

    strategy: str
    records: List[MatchRecord] = field(default_factory=list)
    attempts: List[FallbackAttempt] = field(default_factory=list)


class BaseStrategy(ABC):
    """Base class for all search strategies.

    All strategy implementations must inherit from this class and implement
    ``run`` so the orchestrator can drive them interchangeably.
    """

    name: str = "base"

    @abstractmethod
    async def run(self, term: str, root: Path) -> List[MatchRecord]:
        """Find occurrences of term under root.

        Args:
            term: Search term, matched case-sensitively or not depending on
                the strategy.
            root: Absolute directory to search.

        Returns:
            Match records, exact matches before partial ones.
        """
        ...

    async def execute(self, term: str, root: Path) -> StrategyOutcome:
        """Run the strategy and report it as a single successful attempt.

        Strategies with an internal fallback chain override this to expose
        every backend they tried.
        """
        records = await self.run(term, root)
        return StrategyOutcome(
            strategy=self.name,
            records=records,
            attempts=[FallbackAttempt(backend=self.name, status=AttemptStatus.SUCCEEDED)],
        )
