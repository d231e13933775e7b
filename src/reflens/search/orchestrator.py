"""Search orchestrator driving the strategies through a fixed plan.

Each strategy mode maps to an ordered tuple of plan steps. Steps run in order,
a failing strategy is logged and skipped, and the concatenated records are
reconciled into the final SearchResult.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from reflens.config import Config
from reflens.entities import (
    AttemptStatus,
    FallbackAttempt,
    MatchRecord,
    SearchMetadata,
    SearchResult,
)
from reflens.errors import InvalidSearchRequest
from reflens.search.reconciler import reconcile
from reflens.strategies.base import BaseStrategy
from reflens.strategies.external import ExternalToolStrategy
from reflens.strategies.scanner import ScannerStrategy
from reflens.strategies.symbol import SymbolStrategy


@contextmanager
def timer(name: str, logger: logging.Logger, level: int = logging.DEBUG):
    """Context manager for timing code blocks.

    Args:
        name: Name of the operation being timed
        logger: Logger instance to use
        level: Logging level (default DEBUG)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.log(level, "[TIMING] %s: %.2fms", name, elapsed_ms)


DEFAULT_STRATEGY = "all"

# Names accepted from the web client and older callers
STRATEGY_ALIASES: Dict[str, str] = {
    "typescript": "symbol",
    "python": "symbol",
    "grep": "external",
    "node": "scan",
}


@dataclass(frozen=True)
class PlanStep:
    """One strategy to run; ``only_if_empty`` skips it once anything was found."""

    strategy: str
    only_if_empty: bool = False


SEARCH_PLANS: Dict[str, Tuple[PlanStep, ...]] = {
    "all": (
        PlanStep("symbol"),
        PlanStep("external"),
        PlanStep("scan", only_if_empty=True),
    ),
    "symbol": (PlanStep("symbol"),),
    "external": (PlanStep("external"),),
    "scan": (PlanStep("scan"),),
}


class SearchOrchestrator:
    """Select, run and merge search strategies for one query at a time.

    Holds no per-query state, so concurrent ``search`` calls are independent.

    Attributes:
        config: Runtime configuration
        strategies: Strategy instances keyed by name
        logger: Python logger instance
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        strategies: Optional[Sequence[BaseStrategy]] = None,
    ) -> None:
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

        if strategies is None:
            scanner = ScannerStrategy(self.config)
            strategies = [
                SymbolStrategy(self.config),
                ExternalToolStrategy(self.config, final_fallback=scanner),
                scanner,
            ]
        self.strategies: Dict[str, BaseStrategy] = {s.name: s for s in strategies}

    @staticmethod
    def resolve_mode(strategy: Optional[str]) -> str:
        """Map a requested strategy (or alias) onto a plan name.

        Raises:
            InvalidSearchRequest: If the strategy is unknown.
        """
        requested = (strategy or DEFAULT_STRATEGY).strip().lower()
        mode = STRATEGY_ALIASES.get(requested, requested)
        if mode not in SEARCH_PLANS:
            valid = sorted([*SEARCH_PLANS, *STRATEGY_ALIASES])
            raise InvalidSearchRequest(
                "Invalid search strategy",
                f"Unknown strategy: {strategy}. Expected one of: {', '.join(valid)}",
            )
        return mode

    def validate(
        self,
        term: Optional[str],
        directory: Optional[str],
        strategy: Optional[str] = None,
    ) -> Tuple[str, Path, str]:
        """Check a query before any strategy runs.

        Returns:
            (term, absolute root, plan name)

        Raises:
            InvalidSearchRequest: For a missing term or directory, a directory
                that does not exist, or an unknown strategy.
        """
        missing: Dict[str, str] = {}
        if not term:
            missing["word"] = "Missing search term"
        if not directory:
            missing["directory"] = "Missing directory"
        if missing:
            raise InvalidSearchRequest("Missing required fields", missing)

        mode = self.resolve_mode(strategy)

        root = Path(directory).expanduser()
        if not root.is_dir():
            raise InvalidSearchRequest("Invalid directory", f"Directory does not exist: {directory}")

        return term, Path(os.path.abspath(root)), mode

    async def search(
        self,
        term: Optional[str],
        directory: Optional[str],
        strategy: Optional[str] = None,
    ) -> SearchResult:
        """Run the plan for strategy and reconcile everything it found.

        Args:
            term: Text or identifier to look for
            directory: Root directory of the search
            strategy: "all" (default), "symbol", "external", "scan" or an alias

        Returns:
            SearchResult with unique references, grouping, summary and metadata

        Raises:
            InvalidSearchRequest: If the query is malformed; no strategy runs.
        """
        start = time.perf_counter()
        term, root, mode = self.validate(term, directory, strategy)

        collected: List[MatchRecord] = []
        strategies_run: List[str] = []
        attempts: List[FallbackAttempt] = []

        for step in SEARCH_PLANS[mode]:
            if step.only_if_empty and collected:
                continue

            runner = self.strategies.get(step.strategy)
            if runner is None:
                self.logger.debug("Strategy %s not configured, skipping", step.strategy)
                continue

            strategies_run.append(runner.name)
            self.logger.info("Starting %s search for %r in %s", runner.name, term, root)
            with timer(f"{runner.name}_strategy", self.logger):
                try:
                    outcome = await runner.execute(term, root)
                except Exception as exc:
                    self.logger.error("%s search failed: %s", runner.name, exc)
                    attempts.append(FallbackAttempt(
                        backend=runner.name,
                        status=AttemptStatus.FAILED,
                        reason=f"{type(exc).__name__}: {exc}",
                    ))
                    continue

            self.logger.info("%s search found %d results", runner.name, len(outcome.records))
            collected.extend(outcome.records)
            attempts.extend(outcome.attempts)

        with timer("reconcile", self.logger):
            reconciled = reconcile(collected, root)

        elapsed_ms = (time.perf_counter() - start) * 1000
        return SearchResult(
            references=reconciled.references,
            grouped_by_file_type=reconciled.grouped_by_file_type,
            summary=reconciled.summary,
            metadata=SearchMetadata(
                strategy=strategy or DEFAULT_STRATEGY,
                search_time=round(elapsed_ms, 2),
                searched_word=term,
                directory=str(directory),
                timestamp=datetime.now(timezone.utc).isoformat(),
                strategies_run=strategies_run,
                attempts=attempts,
            ),
        )
