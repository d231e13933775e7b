"""Pydantic models shared by the search strategies, reconciler and server."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LocationKey(NamedTuple):
    """Identity of a physical occurrence: (relative path, line, column)."""

    relative_path: str
    line: int
    column: int


class _CamelModel(BaseModel):
    """Base model serialised with camelCase keys for the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MatchRecord(_CamelModel):
    """One occurrence of the search term as reported by a strategy.

    Attributes:
        file_path: Absolute path of the file containing the match
        line: 1-based line number
        column: 1-based column of the occurrence
        text: The matched line, trimmed
        is_exact_match: True when the term matched on word boundaries
        symbol_name: Resolved symbol name (symbol strategy only)
        syntax_kind: Opaque tag for the construct kind (symbol strategy only)
        is_definition: True for the declaring occurrence (symbol strategy only)
    """

    model_config = ConfigDict(frozen=True)

    file_path: str
    line: int = Field(ge=1)
    column: int = Field(ge=1)
    text: str
    is_exact_match: bool = False
    symbol_name: Optional[str] = None
    syntax_kind: Optional[str] = None
    is_definition: Optional[bool] = None


class EnhancedRecord(MatchRecord):
    """A MatchRecord projected against the query root."""

    relative_path: str
    file_type: str
    context: Optional[str] = None

    @property
    def key(self) -> LocationKey:
        return LocationKey(self.relative_path, self.line, self.column)


class AttemptStatus(str, Enum):
    """Outcome of one entry in a strategy's fallback chain."""

    SUCCEEDED = "succeeded"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class FallbackAttempt(_CamelModel):
    """Trace entry recording which backend was tried and why it was left."""

    backend: str
    status: AttemptStatus
    reason: Optional[str] = None


class SearchSummary(_CamelModel):
    total_files: int = 0
    total_matches: int = 0
    exact_matches: int = 0
    partial_matches: int = 0
    file_types: Dict[str, int] = Field(default_factory=dict)
    definitions: Optional[int] = None
    references: Optional[int] = None


class SearchMetadata(_CamelModel):
    """Bookkeeping for one query.

    ``search_time`` is in milliseconds, ``timestamp`` is ISO-8601 UTC.
    """

    strategy: str
    search_time: float
    searched_word: str
    directory: str
    timestamp: str
    strategies_run: List[str] = Field(default_factory=list)
    attempts: List[FallbackAttempt] = Field(default_factory=list)


class SearchResult(_CamelModel):
    """Aggregate returned to HTTP and terminal callers."""

    references: List[EnhancedRecord] = Field(default_factory=list)
    grouped_by_file_type: Dict[str, List[EnhancedRecord]] = Field(default_factory=dict)
    summary: SearchSummary = Field(default_factory=SearchSummary)
    metadata: SearchMetadata

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)
