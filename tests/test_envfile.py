"""
Tests for the environment file format.

The key constraint: parse(serialize(env)) == env
"""

import pytest
from envlocal.core.envfile import (
    InvalidEnvironmentKey,
    TokenType,
    escape_value,
    parse,
    serialize,
    tokenize,
    unescape_value,
)


class TestSerialize:
    """Test rendering mappings as file content."""

    def test_empty_mapping(self):
        """Empty mapping should produce empty content."""
        assert serialize({}) == ""

    def test_one_record_per_line(self):
        """Each entry should become a newline-terminated record."""
        assert serialize({"FOO": "bar", "BAZ": "qux"}) == "FOO=bar\nBAZ=qux\n"

    def test_preserves_iteration_order(self):
        """Records should follow mapping order, not sorted order."""
        assert serialize({"Z": "1", "A": "2"}) == "Z=1\nA=2\n"

    def test_escapes_newlines(self):
        """Embedded newlines should be written as backslash-n."""
        content = serialize({"FOO": "bar", "MULTI": "line1\nline2"})
        assert content == "FOO=bar\nMULTI=line1\\nline2\n"

    def test_equals_in_value_is_not_escaped(self):
        """Only newlines are escaped."""
        assert serialize({"URL": "a=b&c=d"}) == "URL=a=b&c=d\n"

    def test_empty_value(self):
        """Empty values should still produce a record."""
        assert serialize({"EMPTY": ""}) == "EMPTY=\n"

    @pytest.mark.parametrize("key", ["", "A=B", "A\nB", "A\rB", "#TAG", "  #TAG"])
    def test_rejects_unstorable_keys(self, key):
        """Keys that cannot round-trip should be rejected."""
        with pytest.raises(InvalidEnvironmentKey):
            serialize({key: "value"})


class TestParse:
    """Test parsing file content."""

    def test_simple_records(self):
        env, malformed = parse("FOO=bar\nBAZ=qux\n")
        assert env == {"FOO": "bar", "BAZ": "qux"}
        assert malformed == []

    def test_unescapes_newlines(self):
        """Backslash-n should become a real newline."""
        env, _ = parse("MULTI=line1\\nline2\n")
        assert env == {"MULTI": "line1\nline2"}

    def test_value_keeps_everything_after_first_equals(self):
        env, _ = parse("URL=postgres://u:p@h/db?x=1\n")
        assert env["URL"] == "postgres://u:p@h/db?x=1"

    def test_whitespace_is_preserved(self):
        """Values are not trimmed."""
        env, _ = parse("PADDED=  spaced  \n")
        assert env["PADDED"] == "  spaced  "

    def test_missing_trailing_newline(self):
        env, _ = parse("FOO=bar")
        assert env == {"FOO": "bar"}

    def test_skips_blank_and_comment_lines(self):
        env, malformed = parse("# captured\n\nFOO=bar\n")
        assert env == {"FOO": "bar"}
        assert malformed == []

    def test_malformed_lines_are_reported_not_parsed(self):
        """Lines without '=' are left out and reported."""
        env, malformed = parse("FOO=bar\nnot a record\nBAZ=qux\n")
        assert env == {"FOO": "bar", "BAZ": "qux"}
        assert len(malformed) == 1
        assert malformed[0].line_no == 2
        assert malformed[0].raw == "not a record"

    def test_missing_key_is_malformed(self):
        _, malformed = parse("=value\n")
        assert len(malformed) == 1

    def test_repeated_key_last_wins(self):
        env, _ = parse("FOO=1\nFOO=2\n")
        assert env == {"FOO": "2"}

    def test_carriage_return_stays_in_value(self):
        """Only newline separates records."""
        env, _ = parse("CR=a\rb\n")
        assert env == {"CR": "a\rb"}


class TestTokenize:
    """Test the line tokenizer."""

    def test_token_types(self):
        tokens = tokenize("# c\n\nFOO=bar\nbroken\n")
        assert [t.type for t in tokens] == [
            TokenType.COMMENT,
            TokenType.BLANK_LINE,
            TokenType.KEY_VALUE,
            TokenType.MALFORMED,
        ]

    def test_line_numbers(self):
        tokens = tokenize("A=1\nB=2\n")
        assert [t.line_no for t in tokens] == [1, 2]


class TestRoundTrip:
    """Test that serialized content parses back to the same mapping."""

    def test_round_trip_with_newlines(self):
        env = {"FOO": "bar", "MULTI": "line1\nline2", "TRAIL": "end\n", "EQ": "a=b"}
        parsed, malformed = parse(serialize(env))
        assert parsed == env
        assert malformed == []

    def test_hash_inside_key_round_trips(self):
        """Only a leading '#' marks a comment."""
        env = {"TAG#1": "x", "FOO": "#not-a-comment"}
        assert parse(serialize(env))[0] == env

    def test_escape_helpers_are_inverse(self):
        value = "one\ntwo\nthree"
        assert escape_value(value) == "one\\ntwo\\nthree"
        assert unescape_value(escape_value(value)) == value
