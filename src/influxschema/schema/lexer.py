"""
Tokenizer for InfluxQL schema files.

Only as much of InfluxQL is understood as the schema parser needs: quoted
identifiers, string literals, regex literals, bare words and a few punctuation
characters. Everything else is carried through as opaque words.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from ..exceptions import SchemaParseError


class TokenKind(str, Enum):
    """Kinds of lexical tokens."""

    WORD = "word"
    IDENTIFIER = "identifier"  # double-quoted
    STRING = "string"  # single-quoted
    PUNCT = "punct"
    REGEX = "regex"  # /slash-delimited/


PUNCTUATION = frozenset(";,()")
COMMENT_CHAR = "#"
REGEX_CHAR = "/"
_REGEX_OPERATORS = ("=~", "!~")


@dataclass(frozen=True)
class Token:
    """A lexical token with its position in the source text."""

    kind: TokenKind
    value: str
    start: int
    end: int
    line: int

    def is_keyword(self, keyword: str) -> bool:
        return self.kind == TokenKind.WORD and self.value.upper() == keyword

    @property
    def is_name(self) -> bool:
        return self.kind in (TokenKind.WORD, TokenKind.IDENTIFIER)


def tokenize(text: str, path: str = "<string>", first_line: int = 1) -> List[Token]:
    """Tokenize ``text``, dropping whitespace and ``#`` comment lines."""
    return list(_iter_tokens(text, path, first_line))


def _iter_tokens(text: str, path: str, first_line: int) -> Iterator[Token]:
    pos = 0
    line = first_line
    line_start = True
    length = len(text)
    previous: Optional[Token] = None

    while pos < length:
        ch = text[pos]

        if ch == "\n":
            line += 1
            line_start = True
            pos += 1
            continue
        if ch.isspace():
            pos += 1
            continue

        if ch == COMMENT_CHAR and line_start:
            newline = text.find("\n", pos)
            pos = length if newline < 0 else newline
            continue
        line_start = False

        if ch in PUNCTUATION:
            token = Token(TokenKind.PUNCT, ch, pos, pos + 1, line)
            pos += 1
        elif ch in ("\"", "'"):
            kind = TokenKind.IDENTIFIER if ch == "\"" else TokenKind.STRING
            end, value = _read_quoted(text, pos, path, line)
            token = Token(kind, value, pos, end, line)
            line += text.count("\n", pos, end)
            pos = end
        elif ch == REGEX_CHAR and _starts_regex(previous):
            end = _read_regex(text, pos, path, line)
            token = Token(TokenKind.REGEX, text[pos:end], pos, end, line)
            pos = end
        else:
            start = pos
            while (
                pos < length
                and not text[pos].isspace()
                and text[pos] not in PUNCTUATION
                and text[pos] not in ("\"", "'")
                and not (text[pos] == REGEX_CHAR and text[start:pos].endswith(_REGEX_OPERATORS))
            ):
                pos += 1
            token = Token(TokenKind.WORD, text[start:pos], start, pos, line)

        previous = token
        yield token


def _starts_regex(previous: Optional[Token]) -> bool:
    """A slash opens a regex after a match operator, FROM, ``(`` or ``,``."""
    if previous is None:
        return False
    if previous.kind == TokenKind.PUNCT:
        return previous.value in ",("
    if previous.kind == TokenKind.WORD:
        return previous.value.endswith(_REGEX_OPERATORS) or previous.value.upper() == "FROM"
    return False


def _read_regex(text: str, start: int, path: str, line: int) -> int:
    pos = start + 1
    while pos < len(text) and text[pos] != "\n":
        if text[pos] == "\\":
            pos += 2
            continue
        if text[pos] == REGEX_CHAR:
            return pos + 1
        pos += 1
    raise SchemaParseError(
        "Unterminated regular expression",
        path=path,
        line_number=line,
        line=text[start:].splitlines()[0],
    )


def _read_quoted(text: str, start: int, path: str, line: int):
    quote = text[start]
    chars = []
    pos = start + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\" and pos + 1 < len(text):
            chars.append(text[pos + 1])
            pos += 2
            continue
        if ch == quote:
            return pos + 1, "".join(chars)
        chars.append(ch)
        pos += 1
    raise SchemaParseError(
        f"Unterminated quoted text starting with {quote}",
        path=path,
        line_number=line,
        line=text[start:].splitlines()[0] if text[start:] else None,
    )
