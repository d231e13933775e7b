"""Pure in-process scanner, the fallback that is always available."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Set, Tuple

from reflens.config import Config
from reflens.entities import MatchRecord
from reflens.strategies.base import BaseStrategy
from reflens.strategies.parsing import substring_pattern, word_pattern
from reflens.walker import iter_files

logger = logging.getLogger(__name__)


class ScannerStrategy(BaseStrategy):
    """Walk the tree and match every line with regular expressions.

    Each line gets two passes: a whole-word pass (exact) and a substring pass
    (partial). A partial hit is dropped when an exact hit was already recorded
    for the same file, line, column and text. The walk runs in a worker thread.
    """

    name = "scan"

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()

    async def run(self, term: str, root: Path) -> List[MatchRecord]:
        return await asyncio.to_thread(self.scan, term, Path(root))

    def scan(self, term: str, root: Path) -> List[MatchRecord]:
        exact_re = word_pattern(term)
        partial_re = substring_pattern(term)

        exact: List[MatchRecord] = []
        partial: List[MatchRecord] = []
        exact_keys: Set[Tuple[str, int, int, str]] = set()
        files_scanned = 0

        for path in iter_files(root, self.config.text_extensions, self.config.excluded_dirs):
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.error("Error reading file %s: %s", path, exc)
                continue

            files_scanned += 1
            file_path = str(path)
            for index, line in enumerate(content.split("\n")):
                line_no = index + 1
                text = line.strip()

                for match in exact_re.finditer(line):
                    key = (file_path, line_no, match.start() + 1, text)
                    exact_keys.add(key)
                    exact.append(
                        MatchRecord(
                            file_path=file_path,
                            line=line_no,
                            column=match.start() + 1,
                            text=text,
                            is_exact_match=True,
                        )
                    )

                for match in partial_re.finditer(line):
                    key = (file_path, line_no, match.start() + 1, text)
                    if key in exact_keys:
                        continue
                    partial.append(
                        MatchRecord(
                            file_path=file_path,
                            line=line_no,
                            column=match.start() + 1,
                            text=text,
                            is_exact_match=False,
                        )
                    )

        logger.debug(
            "Scanned %d files under %s: %d exact, %d partial",
            files_scanned, root, len(exact), len(partial),
        )
        return [*exact, *partial]
