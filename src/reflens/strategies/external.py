"""External line-oriented tool strategy with an explicit fallback chain.

Tries ripgrep, then grep, then the in-process scanner. Each tool is invoked
twice per query (whole-word and substring) and the two outputs are split into
exact and partial matches.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from reflens.config import Config
from reflens.entities import AttemptStatus, FallbackAttempt, MatchRecord
from reflens.errors import ToolUnavailableError
from reflens.strategies.base import BaseStrategy, StrategyOutcome
from reflens.strategies.parsing import parse_tool_output, split_exact_partial
from reflens.strategies.process import ToolOutput, locate_executable, run_tool
from reflens.strategies.scanner import ScannerStrategy
from reflens.walker import is_excluded_path

logger = logging.getLogger(__name__)


class ToolBackend(ABC):
    """One external tool able to produce grep-style output."""

    name: str = "tool"

    def __init__(self, config: Config) -> None:
        self.config = config

    @abstractmethod
    def candidates(self) -> List[str]:
        """Executable paths or names to try, in order."""
        ...

    @abstractmethod
    def build_argv(self, executable: str, term: str, root: Path, whole_word: bool) -> List[str]:
        ...

    def locate(self) -> Optional[str]:
        return locate_executable(self.candidates())

    async def search(self, executable: str, term: str, root: Path) -> List[MatchRecord]:
        """Run the whole-word and substring invocations and classify them."""
        timeout = self.config.tool_timeout_s
        outputs = await asyncio.gather(
            run_tool(self.build_argv(executable, term, root, whole_word=True), timeout),
            run_tool(self.build_argv(executable, term, root, whole_word=False), timeout),
            return_exceptions=True,
        )
        # both invocations have finished before either failure is raised
        for output in outputs:
            if isinstance(output, BaseException):
                raise output
        exact_output, candidate_output = outputs

        exact = self._collect(exact_output, term, root, is_exact=True)
        candidates = self._collect(candidate_output, term, root, is_exact=False)
        logger.debug(
            "%s found %d exact and %d candidate matches", self.name, len(exact), len(candidates)
        )
        return split_exact_partial(exact, candidates, term)

    def _collect(
        self, output: ToolOutput, term: str, root: Path, is_exact: bool
    ) -> List[MatchRecord]:
        kind = "exact" if is_exact else "substring"
        if output.timed_out:
            logger.warning("%s %s search timed out, ignoring its output", self.name, kind)
            return []
        # 0 = matches, 1 = no matches; anything else is an error
        if output.returncode not in (0, 1):
            logger.error(
                "%s %s search exited with %s: %s",
                self.name, kind, output.returncode, output.stderr.strip(),
            )
            return []

        records = parse_tool_output(output.stdout, term, is_exact)
        return [
            record for record in records
            if not is_excluded_path(record.file_path, root, self.config.excluded_dirs)
        ]


class RipgrepBackend(ToolBackend):
    name = "ripgrep"

    def candidates(self) -> List[str]:
        return list(self.config.ripgrep_paths)

    def build_argv(self, executable: str, term: str, root: Path, whole_word: bool) -> List[str]:
        extensions = ",".join(ext.lstrip(".") for ext in self.config.text_extensions)
        argv = [
            executable,
            "-n",  # line numbers
            "--no-heading",
            "--with-filename",
            "--null",  # NUL after the file name
            "-i",
            "-F",  # term is a literal
            "--hidden",
            "--no-ignore",
            "--type-add", f"reflens:*.{{{extensions}}}",
            "--type", "reflens",
        ]
        for name in sorted(self.config.excluded_dirs):
            argv.extend(["--glob", f"!**/{name}/**"])
        if whole_word:
            argv.append("-w")
        argv.extend(["--", term, str(root)])
        return argv


class GrepBackend(ToolBackend):
    name = "grep"

    def candidates(self) -> List[str]:
        return [self.config.grep_path]

    def build_argv(self, executable: str, term: str, root: Path, whole_word: bool) -> List[str]:
        argv = [executable, "-r", "-n", "-i", "-F", "-Z"]
        if whole_word:
            argv.append("-w")
        argv.extend(f"--exclude-dir={name}" for name in sorted(self.config.excluded_dirs))
        argv.extend(f"--include=*{ext}" for ext in self.config.text_extensions)
        argv.extend(["--", term, str(root)])
        return argv


class ExternalToolStrategy(BaseStrategy):
    """Search with the first available external tool.

    The chain is an ordered list of tool backends followed by a final
    in-process strategy. A backend whose executable is missing or cannot be
    spawned is recorded as ``unavailable``; one that raises is recorded as
    ``failed``; in both cases the next entry is tried.

    Attributes:
        backends: Tool backends in priority order
        final_fallback: Strategy used when every backend is out
    """

    name = "external"

    def __init__(
        self,
        config: Optional[Config] = None,
        backends: Optional[Sequence[ToolBackend]] = None,
        final_fallback: Optional[BaseStrategy] = None,
    ) -> None:
        self.config = config or Config()
        self.backends: List[ToolBackend] = (
            list(backends)
            if backends is not None
            else [RipgrepBackend(self.config), GrepBackend(self.config)]
        )
        self.final_fallback = final_fallback or ScannerStrategy(self.config)

    async def run(self, term: str, root: Path) -> List[MatchRecord]:
        outcome = await self.execute(term, root)
        return outcome.records

    async def execute(self, term: str, root: Path) -> StrategyOutcome:
        attempts: List[FallbackAttempt] = []
        root = Path(root)

        for backend in self.backends:
            executable = backend.locate()
            if executable is None:
                logger.info("%s not found, trying next search tool", backend.name)
                attempts.append(FallbackAttempt(
                    backend=backend.name,
                    status=AttemptStatus.UNAVAILABLE,
                    reason="executable not found",
                ))
                continue

            start = time.perf_counter()
            try:
                records = await backend.search(executable, term, root)
            except ToolUnavailableError as exc:
                logger.warning("%s could not be started: %s", backend.name, exc.reason)
                attempts.append(FallbackAttempt(
                    backend=backend.name,
                    status=AttemptStatus.UNAVAILABLE,
                    reason=exc.reason,
                ))
                continue
            except Exception as exc:
                logger.error("%s search failed: %s", backend.name, exc)
                attempts.append(FallbackAttempt(
                    backend=backend.name,
                    status=AttemptStatus.FAILED,
                    reason=f"{type(exc).__name__}: {exc}",
                ))
                continue

            logger.debug(
                "[TIMING] %s_search: %.2fms (%d results)",
                backend.name, (time.perf_counter() - start) * 1000, len(records),
            )
            attempts.append(FallbackAttempt(backend=backend.name, status=AttemptStatus.SUCCEEDED))
            return StrategyOutcome(strategy=self.name, records=records, attempts=attempts)

        logger.info("No external search tool available, falling back to %s", self.final_fallback.name)
        records = await self.final_fallback.run(term, root)
        attempts.append(FallbackAttempt(backend=self.final_fallback.name, status=AttemptStatus.SUCCEEDED))
        return StrategyOutcome(strategy=self.name, records=records, attempts=attempts)
