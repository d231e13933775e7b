"""Symbol-aware search backed by jedi.

With a project configuration (pyproject.toml, setup.py, setup.cfg) at or above
the root, names are resolved through a ``jedi.Project`` and definitions can be
expanded to their project-wide usages. Without one, each file is parsed on its
own with parso and only identical name tokens are reported.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import jedi
import parso

from reflens.config import Config, find_project_config
from reflens.entities import AttemptStatus, FallbackAttempt, MatchRecord
from reflens.strategies.base import BaseStrategy, StrategyOutcome
from reflens.walker import is_excluded_path, iter_files

logger = logging.getLogger(__name__)

# jedi keeps module-level caches; serialise access across concurrent requests
_JEDI_LOCK = threading.Lock()


class _SourceCache:
    """Request-local cache of file contents split into lines."""

    def __init__(self) -> None:
        self._code: Dict[Path, Optional[str]] = {}
        self._lines: Dict[Path, List[str]] = {}

    def code(self, path: Path) -> Optional[str]:
        if path not in self._code:
            try:
                self._code[path] = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Error reading file %s: %s", path, exc)
                self._code[path] = None
        return self._code[path]

    def line_text(self, path: Path, line: int) -> str:
        if path not in self._lines:
            code = self.code(path)
            self._lines[path] = parso.split_lines(code) if code is not None else []
        lines = self._lines[path]
        if 1 <= line <= len(lines):
            return lines[line - 1].strip()
        return ""


class SymbolStrategy(BaseStrategy):
    """Find identifier tokens equal to the term and resolve their symbols.

    Errors while building the symbol table are logged and produce no records
    and a failed attempt; the orchestrator's plan decides what runs next.
    """

    name = "symbol"

    def __init__(self, config: Optional[Config] = None, symbol_search: Optional[bool] = None) -> None:
        self.config = config or Config()
        self.symbol_search = self.config.symbol_search if symbol_search is None else symbol_search

    async def run(self, term: str, root: Path) -> List[MatchRecord]:
        outcome = await self.execute(term, root)
        return outcome.records

    async def execute(self, term: str, root: Path) -> StrategyOutcome:
        try:
            records = await asyncio.to_thread(self.search, term, Path(root))
        except Exception as exc:
            logger.error("Symbol search failed for %r under %s: %s", term, root, exc)
            return StrategyOutcome(
                strategy=self.name,
                attempts=[FallbackAttempt(
                    backend=self.name,
                    status=AttemptStatus.FAILED,
                    reason=f"{type(exc).__name__}: {exc}",
                )],
            )

        return StrategyOutcome(
            strategy=self.name,
            records=records,
            attempts=[FallbackAttempt(backend=self.name, status=AttemptStatus.SUCCEEDED)],
        )

    def search(self, term: str, root: Path) -> List[MatchRecord]:
        files = list(iter_files(root, self.config.symbol_extensions, self.config.excluded_dirs))
        config_path = find_project_config(root, self.config.project_config_files)
        sources = _SourceCache()

        if config_path is None:
            logger.info("No project configuration found for %s, parsing files independently", root)
            return self._search_files(term, files, sources)

        logger.debug("Resolving symbols with project configuration %s", config_path)
        with _JEDI_LOCK:
            project = jedi.Project(path=str(config_path.parent))
            return self._search_project(term, root, files, project, sources)

    def _search_project(
        self,
        term: str,
        root: Path,
        files: List[Path],
        project: jedi.Project,
        sources: _SourceCache,
    ) -> List[MatchRecord]:
        records: List[MatchRecord] = []

        for path in files:
            code = sources.code(path)
            if code is None:
                continue

            script = jedi.Script(code=code, path=str(path), project=project)
            for name in script.get_names(all_scopes=True, definitions=True, references=True):
                if name.name != term or name.line is None:
                    continue

                symbol_name = name.full_name or name.name
                is_definition = name.is_definition()
                records.append(MatchRecord(
                    file_path=str(path),
                    line=name.line,
                    column=name.column + 1,
                    text=sources.line_text(path, name.line),
                    is_exact_match=True,
                    symbol_name=symbol_name,
                    syntax_kind=name.type,
                    is_definition=is_definition,
                ))

                if is_definition and self.symbol_search:
                    records.extend(self._usages(script, name, symbol_name, root, sources))

        return records

    def _usages(
        self,
        script: jedi.Script,
        definition: "jedi.api.classes.Name",
        symbol_name: str,
        root: Path,
        sources: _SourceCache,
    ) -> Iterator[MatchRecord]:
        """Yield read-only usages of a definition across the project.

        Usages that are themselves definitions (assignments, imports, the
        declaration itself) count as write access and are skipped.
        """
        references = script.get_references(
            definition.line, definition.column, include_builtins=False, scope="project"
        )
        for reference in references:
            if reference.is_definition():
                continue
            if reference.module_path is None or reference.line is None:
                continue

            ref_path = Path(reference.module_path)
            if is_excluded_path(ref_path, root, self.config.excluded_dirs):
                continue

            yield MatchRecord(
                file_path=str(ref_path),
                line=reference.line,
                column=reference.column + 1,
                text=sources.line_text(ref_path, reference.line),
                is_exact_match=True,
                symbol_name=symbol_name,
                syntax_kind=definition.type,
                is_definition=False,
            )

    def _search_files(self, term: str, files: List[Path], sources: _SourceCache) -> List[MatchRecord]:
        records: List[MatchRecord] = []

        for path in files:
            code = sources.code(path)
            if code is None:
                continue

            module = parso.parse(code)
            leaf = module.get_first_leaf()
            while leaf is not None:
                if leaf.type == "name" and leaf.value == term:
                    line, column = leaf.start_pos
                    records.append(MatchRecord(
                        file_path=str(path),
                        line=line,
                        column=column + 1,
                        text=sources.line_text(path, line),
                        is_exact_match=True,
                        syntax_kind=leaf.parent.type if leaf.parent is not None else leaf.type,
                    ))
                leaf = leaf.get_next_leaf()

        return records
