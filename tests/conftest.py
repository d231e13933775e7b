"""Shared fixtures for reflens tests."""

from pathlib import Path
from typing import List, Optional

import pytest

from reflens.config import Config
from reflens.entities import MatchRecord
from reflens.strategies.base import BaseStrategy


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config isolated from the user's data directory."""
    return Config(data_dir=tmp_path / "reflens-data")


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """Small source tree with exact, partial and excluded occurrences of ``foo``."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "dep").mkdir(parents=True)

    (root / "src" / "a.py").write_text("foo = 1\nfoobar = foo\n", encoding="utf-8")
    (root / "src" / "b.ts").write_text("const x = FOO;\n", encoding="utf-8")
    (root / "notes.txt").write_text("foo in an unsearched file\n", encoding="utf-8")
    (root / "node_modules" / "dep" / "index.js").write_text("foo();\n", encoding="utf-8")
    return root


class FakeStrategy(BaseStrategy):
    """Strategy returning canned records and counting its invocations."""

    def __init__(
        self,
        name: str,
        records: Optional[List[MatchRecord]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.name = name
        self.records = list(records or [])
        self.error = error
        self.calls: List[tuple] = []

    async def run(self, term, root):
        self.calls.append((term, root))
        if self.error is not None:
            raise self.error
        return list(self.records)


def make_record(
    file_path: str,
    line: int = 1,
    column: int = 1,
    text: str = "foo",
    **kwargs,
) -> MatchRecord:
    return MatchRecord(file_path=file_path, line=line, column=column, text=text, **kwargs)
