"""
Line-oriented key=value format for persisted environment files.

Each record is one line: ``KEY=value``. The only escape is a literal newline
inside a value, written as the two characters ``\\n``. Everything after the
first ``=`` is the value, so ``=`` is allowed in values but not in keys.

The constraint is:
    parse(serialize(env)) == env
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


NEWLINE_ESCAPE = "\\n"


class InvalidEnvironmentKey(ValueError):
    """Raised when a variable name cannot be stored in the line format."""


class TokenType(Enum):
    """Token types for environment file lines."""
    COMMENT = "comment"
    BLANK_LINE = "blank_line"
    KEY_VALUE = "key_value"
    MALFORMED = "malformed"


@dataclass
class Token:
    """A single line of an environment file."""
    type: TokenType
    raw: str
    line_no: int
    key: Optional[str] = None
    value: Optional[str] = None

    def __repr__(self):
        if self.type == TokenType.KEY_VALUE:
            return f"Token({self.type.value}, {self.key}={self.value!r})"
        return f"Token({self.type.value}, line {self.line_no}, {repr(self.raw[:20])}...)"


def escape_value(value: str) -> str:
    """Encode embedded newlines as a literal backslash-n."""
    return value.replace("\n", NEWLINE_ESCAPE)


def unescape_value(value: str) -> str:
    """Restore newlines encoded by :func:`escape_value`."""
    return value.replace(NEWLINE_ESCAPE, "\n")


def validate_key(key: str) -> None:
    """
    Check that a key can round-trip through the line format.

    Raises:
        InvalidEnvironmentKey: if the key is empty or contains ``=``,
            a newline or a carriage return, or if it starts with
            ``#`` (such a line reads back as a comment).
    """
    if not key:
        raise InvalidEnvironmentKey("Environment variable name must not be empty")
    for forbidden in ("=", "\n", "\r"):
        if forbidden in key:
            raise InvalidEnvironmentKey(
                f"Environment variable name {key!r} must not contain {forbidden!r}"
            )
    if key.lstrip().startswith("#"):
        raise InvalidEnvironmentKey(
            f"Environment variable name {key!r} must not start with '#'"
        )


class Lexer:
    """
    Tokenizer for persisted environment files.

    Lines are split on ``\\n`` only, so a bare carriage return stays part of
    the value it was written with.
    """

    def __init__(self, content: str):
        self.content = content
        self.lines = content.split("\n")
        # A trailing newline produces one empty tail element, not a line
        if self.lines and self.lines[-1] == "":
            self.lines.pop()

    def tokenize(self) -> List[Token]:
        return [self._parse_line(line, idx) for idx, line in enumerate(self.lines, start=1)]

    def _parse_line(self, line: str, line_no: int) -> Token:
        if not line.strip():
            return Token(type=TokenType.BLANK_LINE, raw=line, line_no=line_no)

        if line.lstrip().startswith("#"):
            return Token(type=TokenType.COMMENT, raw=line, line_no=line_no)

        key, sep, value = line.partition("=")
        if not sep or not key:
            return Token(type=TokenType.MALFORMED, raw=line, line_no=line_no)

        return Token(
            type=TokenType.KEY_VALUE,
            raw=line,
            line_no=line_no,
            key=key,
            value=unescape_value(value),
        )


def tokenize(content: str) -> List[Token]:
    """
    Parse environment file content into tokens.

    Args:
        content: Text content of a persisted environment file

    Returns:
        List of Token objects, one per line
    """
    return Lexer(content).tokenize()


def get_keys(tokens: Iterable[Token]) -> Dict[str, str]:
    """
    Extract key-value pairs from tokens.

    Later records win when a key repeats.
    """
    return {
        token.key: token.value
        for token in tokens
        if token.type == TokenType.KEY_VALUE
    }


def get_malformed(tokens: Iterable[Token]) -> List[Token]:
    """Return the lines that are neither records, comments nor blank."""
    return [token for token in tokens if token.type == TokenType.MALFORMED]


def parse(content: str) -> Tuple[Dict[str, str], List[Token]]:
    """
    Parse content into an environment mapping.

    Returns:
        Tuple of (mapping, malformed tokens). Malformed lines are left out of
        the mapping; reporting them is up to the caller.
    """
    tokens = tokenize(content)
    return get_keys(tokens), get_malformed(tokens)


def serialize(env: Mapping[str, str]) -> str:
    """
    Render a mapping as file content, in iteration order.

    Args:
        env: Mapping of variable name to value

    Returns:
        One ``KEY=escaped_value`` line per entry, each newline-terminated

    Raises:
        InvalidEnvironmentKey: if any key cannot be stored
    """
    lines = []
    for key, value in env.items():
        validate_key(key)
        lines.append(f"{key}={escape_value(str(value))}\n")
    return "".join(lines)
