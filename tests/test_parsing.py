"""Tests for grep-style output parsing and exact/partial classification."""

from conftest import make_record

from reflens.strategies.parsing import (
    parse_tool_output,
    split_exact_partial,
    substring_pattern,
    word_pattern,
)


class TestPatterns:
    """Tests for the literal term patterns."""

    def test_word_pattern_respects_boundaries(self):
        """Test the whole-word pattern rejects identifiers containing the term."""
        pattern = word_pattern("foo")
        assert pattern.search("x = FOO + 1")
        assert not pattern.search("foobar = 1")

    def test_term_is_literal(self):
        """Test regex metacharacters in the term are matched literally."""
        assert substring_pattern("a.b").search("x = a.b")
        assert not substring_pattern("a.b").search("x = axb")


class TestParseToolOutput:
    """Tests for parse_tool_output."""

    def test_colon_separated_line(self):
        """Test path:line:text with the column of the occurrence."""
        records = parse_tool_output("/r/a.py:3:    foo = 1\n", "foo", is_exact=True)

        assert len(records) == 1
        record = records[0]
        assert record.file_path == "/r/a.py"
        assert record.line == 3
        assert record.column == 5
        assert record.text == "foo = 1"
        assert record.is_exact_match is True

    def test_nul_separated_path_may_contain_colons(self):
        """Test NUL-terminated paths keep their colons."""
        records = parse_tool_output("/r/c:d.py\x002:x foo\n", "foo", is_exact=False)

        assert records[0].file_path == "/r/c:d.py"
        assert records[0].line == 2
        assert records[0].column == 3
        assert records[0].is_exact_match is False

    def test_text_may_contain_colons(self):
        """Test the line number is taken from the last path:line: prefix."""
        records = parse_tool_output("C:/x/y.py:10:bar:baz\n", "bar", is_exact=True)

        assert records[0].file_path == "C:/x/y.py"
        assert records[0].line == 10
        assert records[0].text == "bar:baz"

    def test_malformed_lines_are_skipped(self):
        """Test lines without a line number, blank lines and line 0 are ignored."""
        output = "garbage\n\n/r/a.py:0:foo\n/r/a.py:7:foo\r\n"
        records = parse_tool_output(output, "foo", is_exact=True)

        assert [r.line for r in records] == [7]

    def test_column_falls_back_to_first_non_blank(self):
        """Test a line without a visible occurrence uses its indentation."""
        records = parse_tool_output("/r/a.py:1:    something else\n", "foo", is_exact=False)
        assert records[0].column == 5


class TestSplitExactPartial:
    """Tests for split_exact_partial."""

    def test_candidates_become_partial(self):
        """Test candidates outside the exact set are demoted to partial matches."""
        exact = [make_record("/r/a.py", line=1, text="foo = 1", is_exact_match=True)]
        candidates = [
            make_record("/r/a.py", line=1, text="foo = 1"),
            make_record("/r/a.py", line=2, text="foobar = 2", is_exact_match=True),
            make_record("/r/a.py", line=3, text="nothing here"),
        ]

        merged = split_exact_partial(exact, candidates, "FOO")

        assert [(r.line, r.is_exact_match) for r in merged] == [(1, True), (2, False)]

    def test_exact_matches_come_first(self):
        """Test exact records precede partial ones regardless of input order."""
        exact = [make_record("/r/b.py", line=9, text="foo", is_exact_match=True)]
        candidates = [make_record("/r/a.py", line=1, text="myfoo")]

        merged = split_exact_partial(exact, candidates, "foo")

        assert merged[0].file_path == "/r/b.py"
        assert merged[1].file_path == "/r/a.py"
