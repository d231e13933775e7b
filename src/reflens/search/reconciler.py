"""Reconciliation of raw match records into one result set.

Enhances records against the query root, deduplicates them by location,
groups them by file type and computes the summary. Every function here is
pure.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from reflens.entities import EnhancedRecord, LocationKey, MatchRecord, SearchSummary


@dataclass
class ReconciledResult:
    """Unique records with their grouping and summary."""

    references: List[EnhancedRecord] = field(default_factory=list)
    grouped_by_file_type: Dict[str, List[EnhancedRecord]] = field(default_factory=dict)
    summary: SearchSummary = field(default_factory=SearchSummary)


def enhance_record(record: MatchRecord, root: str | Path) -> EnhancedRecord:
    """Project a raw record against root.

    Already-enhanced records are returned unchanged.
    """
    if isinstance(record, EnhancedRecord):
        return record

    try:
        relative_path = os.path.relpath(record.file_path, root)
    except ValueError:
        relative_path = record.file_path

    return EnhancedRecord(
        **record.model_dump(),
        relative_path=relative_path,
        file_type=Path(record.file_path).suffix[1:],
        context=record.text,
    )


def deduplicate(records: Iterable[EnhancedRecord]) -> List[EnhancedRecord]:
    """Keep one record per (relative_path, line, column).

    A key keeps the position where it was first seen, but a later record with
    the same key replaces the earlier one, so the last strategy to report a
    location decides its classification.
    """
    unique: Dict[LocationKey, EnhancedRecord] = {}
    for record in records:
        unique[record.key] = record
    return list(unique.values())


def group_by_file_type(records: Sequence[EnhancedRecord]) -> Dict[str, List[EnhancedRecord]]:
    grouped: Dict[str, List[EnhancedRecord]] = {}
    for record in records:
        grouped.setdefault(record.file_type, []).append(record)
    return grouped


def summarize(
    records: Sequence[EnhancedRecord],
    grouped: Dict[str, List[EnhancedRecord]],
) -> SearchSummary:
    """Compute totals for a unique record sequence.

    Definition and reference counts are only reported when at least one
    record carries the definition flag.
    """
    exact = sum(1 for record in records if record.is_exact_match)
    summary = SearchSummary(
        total_files=len({record.file_path for record in records}),
        total_matches=len(records),
        exact_matches=exact,
        partial_matches=len(records) - exact,
        file_types={file_type: len(group) for file_type, group in grouped.items()},
    )

    if any(record.is_definition is not None for record in records):
        definitions = sum(1 for record in records if record.is_definition)
        summary.definitions = definitions
        summary.references = len(records) - definitions

    return summary


def reconcile(records: Iterable[MatchRecord], root: str | Path) -> ReconciledResult:
    """Enhance, deduplicate, group and summarize records.

    Args:
        records: Raw and/or enhanced records, in strategy order
        root: The query's root directory

    Returns:
        ReconciledResult whose references are unique by location
    """
    unique = deduplicate(enhance_record(record, root) for record in records)
    grouped = group_by_file_type(unique)
    return ReconciledResult(
        references=unique,
        grouped_by_file_type=grouped,
        summary=summarize(unique, grouped),
    )
