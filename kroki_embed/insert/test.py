"""Tests for preamble insertion."""

import pytest

from kroki_embed.config import InsertDirective

from .lib import InsertionError, apply_directive, insert_after_line


class TestInsertAfterLine:
    """Tests for insert_after_line."""

    @pytest.mark.unit
    def test_line_zero_prefixes(self):
        """Line 0 puts the text first, without touching line endings."""
        assert insert_after_line("a\nb", 0, "X") == "X\na\nb"

    @pytest.mark.unit
    def test_line_zero_on_empty_text(self):
        """Line 0 on empty text still adds the separator."""
        assert insert_after_line("", 0, "X") == "X\n"

    @pytest.mark.unit
    def test_after_first_line(self):
        """Inserted line follows the first line; every line ends in newline."""
        assert insert_after_line("a\nb\nc", 1, "X") == "a\nX\nb\nc\n"

    @pytest.mark.unit
    def test_after_last_full_line(self):
        """Insertion before the empty tail of a newline-terminated text."""
        assert insert_after_line("a\nb\n", 2, "X") == "a\nb\nX\n\n"

    @pytest.mark.unit
    def test_theme_after_startuml(self):
        """Typical use: theme directive after @startuml."""
        source = "@startuml\nA -> B\n@enduml"
        result = insert_after_line(source, 1, "!theme sketchy-outline")
        assert result.split("\n")[:2] == ["@startuml", "!theme sketchy-outline"]

    @pytest.mark.unit
    def test_line_past_end_rejected(self):
        """Out-of-range lines raise instead of silently dropping the text."""
        with pytest.raises(InsertionError, match="text has 3 line"):
            insert_after_line("a\nb\nc", 3, "X")

    @pytest.mark.unit
    def test_negative_line_rejected(self):
        """Negative lines are invalid."""
        with pytest.raises(InsertionError):
            insert_after_line("a", -1, "X")

    @pytest.mark.unit
    def test_error_is_value_error(self):
        """InsertionError can be caught as ValueError."""
        with pytest.raises(ValueError):
            insert_after_line("a", 5, "X")


class TestApplyDirective:
    """Tests for apply_directive."""

    @pytest.mark.unit
    def test_empty_content_is_noop(self):
        """Directive without content returns text unchanged."""
        assert apply_directive("a\nb", InsertDirective(after_line=1)) == "a\nb"

    @pytest.mark.unit
    def test_applies_content(self):
        """Directive with content inserts it."""
        directive = InsertDirective(after_line=1, content="X")
        assert apply_directive("a\nb", directive) == "a\nX\nb\n"
