"""Tests for query compilation, line scanning and line replacement."""

import pytest

from multibuffer.core.exceptions import EmptyQueryError, InvalidPatternError
from multibuffer.core.models import MatchSpan, ReplaceOptions, SearchOptions
from multibuffer.services.matcher import (
    MatchBudget,
    Matcher,
    compile_query,
    is_whole_word,
)


class TestCompileQuery:
    """Tests for compile_query validation."""

    def test_empty_query_rejected(self):
        """Empty queries fail before any scanning."""
        with pytest.raises(EmptyQueryError, match="cannot be empty"):
            compile_query(SearchOptions(query=""))

    def test_malformed_regex_rejected(self):
        """Malformed patterns raise InvalidPatternError with the position."""
        with pytest.raises(InvalidPatternError) as exc_info:
            compile_query(SearchOptions(query="foo(", is_regex=True))
        assert exc_info.value.pattern == "foo("
        assert exc_info.value.position is not None

    def test_literal_query_with_regex_characters(self):
        """Literal mode escapes pattern metacharacters."""
        matcher = Matcher(SearchOptions(query="a.b("))
        assert len(list(matcher.iter_line_matches("a.b( axb("))) == 1

    def test_invalid_replacement_template_rejected(self):
        """Regex replacements referencing missing groups fail up front."""
        options = ReplaceOptions(query="(a)", is_regex=True, replacement=r"\2")
        with pytest.raises(InvalidPatternError, match="replacement"):
            compile_query(options)


class TestCaseSensitivity:
    """Tests for case-insensitive and case-sensitive matching."""

    def test_case_insensitive_literal(self):
        """'Foo' matches every casing of foo when case-insensitive."""
        matcher = Matcher(SearchOptions(query="Foo", is_case_sensitive=False))
        spans = matcher.find_in_lines(["foo FOO fOo"])
        assert len(spans) == 3

    def test_case_sensitive_literal(self):
        """'Foo' matches none of foo/FOO/fOo when case-sensitive."""
        matcher = Matcher(SearchOptions(query="Foo", is_case_sensitive=True))
        assert matcher.find_in_lines(["foo FOO fOo"]) == []

    def test_case_insensitive_non_ascii(self):
        """Case folding works for non-ASCII letters."""
        matcher = Matcher(SearchOptions(query="ÉCOLE"))
        spans = matcher.find_in_lines(["une école"])
        assert spans == [MatchSpan(0, 4, 0, 9)]

    def test_regex_case_flag(self):
        """Pattern mode applies case sensitivity as a flag."""
        insensitive = Matcher(SearchOptions(query="f[o]+", is_regex=True))
        sensitive = Matcher(
            SearchOptions(query="f[o]+", is_regex=True, is_case_sensitive=True)
        )
        assert len(insensitive.find_in_lines(["FOO foo"])) == 2
        assert len(sensitive.find_in_lines(["FOO foo"])) == 1


class TestWholeWord:
    """Tests for whole-word filtering."""

    def test_whole_word_literal(self):
        """Only the standalone 'cat' survives whole-word filtering."""
        matcher = Matcher(SearchOptions(query="cat", match_whole_word=True))
        spans = matcher.find_in_lines(["concatenate cat category"])
        assert spans == [MatchSpan(0, 12, 0, 15)]

    def test_whole_word_regex(self):
        """Whole-word filtering also applies to patterns."""
        matcher = Matcher(
            SearchOptions(query="ca.", is_regex=True, match_whole_word=True)
        )
        spans = matcher.find_in_lines(["cab scat car_ cat."])
        assert [(s.start_col, s.end_col) for s in spans] == [(0, 3), (14, 17)]

    def test_underscore_and_digits_are_word_characters(self):
        assert not is_whole_word("_cat", 1, 4)
        assert not is_whole_word("cat9", 0, 3)
        assert is_whole_word("(cat)", 1, 4)
        assert is_whole_word("cat", 0, 3)


class TestScanning:
    """Tests for the scanning loop."""

    def test_spans_ordered_by_line_then_column(self):
        matcher = Matcher(SearchOptions(query="x"))
        spans = matcher.find_in_lines(["a x x", "", "x"])
        assert spans == [
            MatchSpan(0, 2, 0, 3),
            MatchSpan(0, 4, 0, 5),
            MatchSpan(2, 0, 2, 1),
        ]

    def test_zero_length_matches_terminate(self):
        """A pattern matching the empty string advances one character per match."""
        matcher = Matcher(SearchOptions(query="x*", is_regex=True))
        spans = matcher.find_in_lines(["abc"])
        assert [s.start_col for s in spans] == [0, 1, 2, 3]
        assert all(s.is_empty for s in spans)

    def test_zero_length_on_empty_line(self):
        matcher = Matcher(SearchOptions(query="^", is_regex=True))
        assert len(matcher.find_in_lines(["", ""])) == 2

    def test_budget_stops_scanning(self):
        """Scanning stops as soon as the global budget is used up."""
        matcher = Matcher(SearchOptions(query="foo"))
        budget = MatchBudget(2)
        spans = matcher.find_in_lines(["foo foo foo", "foo"], budget)
        assert len(spans) == 2
        assert budget.exhausted
        assert budget.remaining == 0

    def test_exhausted_budget_returns_nothing(self):
        matcher = Matcher(SearchOptions(query="foo"))
        budget = MatchBudget(1)
        budget.consume()
        assert matcher.find_in_lines(["foo"], budget) == []

    def test_unlimited_budget(self):
        budget = MatchBudget()
        budget.consume(1000)
        assert not budget.exhausted
        assert budget.remaining is None


class TestReplaceLine:
    """Tests for line replacement semantics."""

    def test_case_insensitive_literal_replacement_is_verbatim(self):
        """Every casing is replaced by the literal replacement text."""
        matcher = Matcher(ReplaceOptions(query="foo", replacement="bar"))
        assert matcher.replace_line("Foo and foo", "bar") == "bar and bar"

    def test_case_sensitive_literal_replacement(self):
        options = ReplaceOptions(query="foo", is_case_sensitive=True, replacement="bar")
        matcher = Matcher(options)
        assert matcher.replace_line("Foo and foo", "bar") == "Foo and bar"

    def test_literal_replacement_keeps_backslashes(self):
        """Literal replacements are not treated as templates."""
        matcher = Matcher(ReplaceOptions(query="sep", replacement=r"\n"))
        assert matcher.replace_line("a sep b", r"\n") == r"a \n b"

    def test_regex_group_references(self):
        options = ReplaceOptions(
            query=r"(\w+)@(\w+)", is_regex=True, replacement=r"\2@\1"
        )
        matcher = Matcher(options)
        assert matcher.replace_line("x a@b y c@d", r"\2@\1") == "x b@a y d@c"

    def test_whole_word_replacement(self):
        options = ReplaceOptions(query="cat", match_whole_word=True, replacement="dog")
        matcher = Matcher(options)
        assert (
            matcher.replace_line("concatenate cat category", "dog")
            == "concatenate dog category"
        )

    def test_no_match_returns_line_unchanged(self):
        matcher = Matcher(ReplaceOptions(query="zzz", replacement="y"))
        assert matcher.replace_line("abc", "y") == "abc"
