from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List


class LBError(Exception):
    """Base class for interpreter errors."""


class LBLexError(LBError):
    """Raised when the source text cannot be split into tokens."""


class LBParseError(LBError):
    """Raised when parsing fails."""


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    line: int
    column: int


UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
QUOTES = ("'", '"')
WHITESPACE = " \t\r\n\f\v"


class Lexer:
    def __init__(self, text: str, filename: str = "<string>") -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        return list(self.tokens())

    def tokens(self) -> Iterator[Token]:
        # Each call starts a fresh scan, so the sequence can be restarted.
        self.index = 0
        self.line = 1
        self.column = 1
        text = self.text
        n = len(text)
        _advance = self._advance

        while self.index < n:
            ch: str = text[self.index]
            if ch in WHITESPACE:
                _advance()
                continue
            if ch == "!":
                self._consume_comment()
                continue
            if ch in UPPERCASE:
                yield Token("UPPER", ch, self.line, self.column)
                _advance()
                continue
            if ch in LOWERCASE:
                yield Token("LOWER", ch, self.line, self.column)
                _advance()
                continue
            if ch in QUOTES:
                yield self._consume_string()
                continue
            if ch == "-" or ch in DIGITS:
                yield self._consume_number()
                continue
            raise LBLexError(
                f"Unexpected character '{ch}' at {self.filename}:{self.line}:{self.column}"
            )
        yield Token("EOF", "", self.line, self.column)

    def _consume_comment(self) -> None:
        text = self.text
        n = len(text)
        _advance = self._advance
        while self.index < n and text[self.index] != "\n":
            _advance()

    def _consume_number(self) -> Token:
        line, col = self.line, self.column
        sign = ""
        if self._peek() == "-":
            self._advance()
            if self._eof or self._peek() not in DIGITS:
                raise LBLexError(f"Expected digits after '-' at {self.filename}:{line}:{col}")
            sign = "-"
        whole = self._consume_digits()
        if not self._eof and self._peek() == ".":
            # A trailing '.' without digits is not part of any literal.
            if self.index + 1 >= len(self.text) or self.text[self.index + 1] not in DIGITS:
                raise LBLexError(
                    f"Expected digits after '.' at {self.filename}:{self.line}:{self.column}"
                )
            self._advance()  # consume '.'
            frac = self._consume_digits()
            return Token("FLOAT", f"{sign}{whole}.{frac}", line, col)
        return Token("INT", sign + whole, line, col)

    def _consume_digits(self) -> str:
        start = self.index
        text = self.text
        n = len(text)
        while self.index < n and text[self.index] in DIGITS:
            self._advance()
        return text[start:self.index]

    def _consume_string(self) -> Token:
        line, col = self.line, self.column
        opening = self._peek()
        self._advance()  # consume opening quote
        chars: List[str] = []
        while not self._eof:
            ch = self._peek()
            if ch == opening:
                self._advance()
                return Token("STRING", "".join(chars), line, col)
            chars.append(ch)
            self._advance()
        raise LBLexError(
            f"Unterminated string literal at {self.filename}:{line}:{col}"
        )

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
