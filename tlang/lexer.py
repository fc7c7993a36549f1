"""tlang Lexer — lazy tokenizer over a forward-only character stream.

Tokens are produced one at a time on demand; the parser keeps exactly one of
them as lookahead. The lexer never fails: a character it does not recognise
comes back verbatim as a CHAR token for the parser to reject.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, TextIO

from tlang.errors import SourceLocation


class TokenType(Enum):
    # Keywords
    FN = auto()
    IMPORT = auto()
    EXIT = auto()
    IF = auto()
    THEN = auto()
    ELSE = auto()

    # Literals
    NUMBER = auto()

    # Identifier
    IDENT = auto()

    # Any other single character: operators and punctuation
    CHAR = auto()

    # Special
    EOF = auto()


KEYWORDS: dict[str, TokenType] = {
    "fn": TokenType.FN,
    "import": TokenType.IMPORT,
    "exit": TokenType.EXIT,
    "if": TokenType.IF,
    "then": TokenType.THEN,
    "else": TokenType.ELSE,
}

_WHITESPACE = (" ", "\t", "\r", "\n")


def _is_digit(ch: Optional[str]) -> bool:
    return ch is not None and "0" <= ch <= "9"


@dataclass
class Token:
    type: TokenType
    value: str
    location: SourceLocation
    number: float = 0.0

    def is_char(self, ch: str) -> bool:
        return self.type == TokenType.CHAR and self.value == ch

    def describe(self) -> str:
        if self.type == TokenType.EOF:
            return "end of input"
        return f"'{self.value}'"

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.location})"


class Lexer:
    """Tokenizer reading tlang source from a text stream."""

    def __init__(self, stream: TextIO, filename: str = "<stdin>"):
        self.stream = stream
        self.filename = filename
        self.line = 1
        self.column = 0
        # One character of lookahead, primed with a blank like the shell prompt.
        self._last: Optional[str] = " "

    @classmethod
    def from_source(cls, source: str, filename: str = "<string>") -> "Lexer":
        return cls(io.StringIO(source), filename)

    def _loc(self) -> SourceLocation:
        return SourceLocation(self.line, max(self.column, 1), self.filename)

    def _advance(self) -> Optional[str]:
        """Read the next character; None marks end of input."""
        if self._last == "\n":
            self.line += 1
            self.column = 0
        ch = self.stream.read(1)
        if not ch:
            self._last = None
            return None
        self.column += 1
        self._last = ch
        return ch

    def _read_identifier(self) -> Token:
        loc = self._loc()
        value = self._last
        while self._advance() is not None and self._last.isalnum():
            value += self._last
        token_type = KEYWORDS.get(value, TokenType.IDENT)
        return Token(token_type, value, loc)

    def _read_number(self) -> Token:
        loc = self._loc()
        value = ""
        while _is_digit(self._last):
            value += self._last
            self._advance()
        # At most one decimal point; a second '.' is left for the next token.
        if self._last == ".":
            value += self._last
            self._advance()
            while _is_digit(self._last):
                value += self._last
                self._advance()
        return Token(TokenType.NUMBER, value, loc, number=float(value))

    def _skip_comment(self) -> None:
        while self._last is not None and self._last not in ("\n", "\r"):
            self._advance()

    def _skip_blanks(self) -> None:
        """Skip whitespace and comments up to the next real token."""
        while True:
            while self._last is not None and self._last in _WHITESPACE:
                self._advance()
            if self._last != "#":
                return
            self._skip_comment()

    def next_token(self) -> Token:
        self._skip_blanks()

        if self._last is None:
            return Token(TokenType.EOF, "", self._loc())

        ch = self._last
        if ch.isalpha():
            return self._read_identifier()
        if _is_digit(ch):
            return self._read_number()

        loc = self._loc()
        self._advance()
        return Token(TokenType.CHAR, ch, loc)

    def __iter__(self):
        while True:
            tok = self.next_token()
            yield tok
            if tok.type == TokenType.EOF:
                return


def tokenize(source: str, filename: str = "<string>") -> list[Token]:
    """Convenience function to tokenize a whole string, EOF token included."""
    return list(Lexer.from_source(source, filename))
