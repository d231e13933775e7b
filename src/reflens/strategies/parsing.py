"""Pure parsing and classification of line-oriented tool output."""

from __future__ import annotations

import re
from typing import List, Pattern, Sequence, Tuple

from reflens.entities import MatchRecord

# path:line:text (greedy path so that colons inside paths survive)
_COLON_LINE = re.compile(r"^(.+):(\d+):(.*)$")
# line:text, the remainder after a NUL-terminated path (rg --null / grep -Z)
_NUL_REMAINDER = re.compile(r"^(\d+):(.*)$")


def word_pattern(term: str) -> Pattern[str]:
    """Case-insensitive whole-word pattern for a literal term."""
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


def substring_pattern(term: str) -> Pattern[str]:
    """Case-insensitive substring pattern for a literal term."""
    return re.compile(re.escape(term), re.IGNORECASE)


def _leading_column(raw: str) -> int:
    stripped = raw.lstrip()
    if not stripped:
        return 1
    return len(raw) - len(stripped) + 1


def _split_line(line: str) -> Tuple[str, str, str] | None:
    if "\0" in line:
        path, remainder = line.split("\0", 1)
        match = _NUL_REMAINDER.match(remainder)
        if not match or not path:
            return None
        return path, match.group(1), match.group(2)

    match = _COLON_LINE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2), match.group(3)


def parse_tool_output(output: str, term: str, is_exact: bool) -> List[MatchRecord]:
    """Parse grep-style output into match records.

    Accepts both ``path:line:text`` and NUL-separated ``path\\0line:text``
    lines. The column is that of the first whole-word (exact) or substring
    (partial) occurrence of term in the raw line, falling back to the first
    non-blank character.

    Args:
        output: Raw stdout of the tool
        term: The literal search term
        is_exact: Whether the output came from a whole-word invocation

    Returns:
        Records in emission order
    """
    pattern = word_pattern(term) if is_exact else substring_pattern(term)
    records: List[MatchRecord] = []

    for line in output.split("\n"):
        line = line.rstrip("\r")
        if not line.strip():
            continue

        parts = _split_line(line)
        if parts is None:
            continue
        file_path, line_num, raw = parts

        number = int(line_num)
        if number < 1:
            continue

        occurrence = pattern.search(raw)
        column = occurrence.start() + 1 if occurrence else _leading_column(raw)

        records.append(
            MatchRecord(
                file_path=file_path,
                line=number,
                column=column,
                text=raw.strip(),
                is_exact_match=is_exact,
            )
        )

    return records


def split_exact_partial(
    exact: Sequence[MatchRecord],
    candidates: Sequence[MatchRecord],
    term: str,
) -> List[MatchRecord]:
    """Combine a whole-word result set with a substring superset.

    The exact set is trusted as-is. Candidates already present in it, compared
    by (file, line, text), are dropped; the rest become partial matches if
    their text contains the term case-insensitively.

    Returns:
        Exact matches first, then partial matches.
    """
    exact_keys = {(record.file_path, record.line, record.text) for record in exact}
    needle = term.lower()

    partial: List[MatchRecord] = []
    for record in candidates:
        if (record.file_path, record.line, record.text) in exact_keys:
            continue
        if needle not in record.text.lower():
            continue
        if record.is_exact_match:
            record = record.model_copy(update={"is_exact_match": False})
        partial.append(record)

    return [*exact, *partial]
