"""A small tokenizer for marker arguments.

It recognises identifiers, integers, floats, quoted strings, raw strings,
character literals and comments, and hands every other character back as a
one-character string.  Errors are reported through a callback, or raised as
:class:`ScannerError` when no callback is set.
"""

from __future__ import annotations

import enum
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional, Union


class Token(enum.Enum):
    """Kinds of multi-character tokens produced by :class:`Scanner`."""

    EOF = "EOF"
    IDENT = "Ident"
    INT = "Int"
    FLOAT = "Float"
    CHAR = "Char"
    STRING = "String"
    RAW_STRING = "RawString"
    COMMENT = "Comment"


class ScanMode(enum.IntFlag):
    """Which token kinds the scanner recognises."""

    IDENTS = 1 << 2
    INTS = 1 << 3
    FLOATS = 1 << 4
    CHARS = 1 << 5
    STRINGS = 1 << 6
    RAW_STRINGS = 1 << 7
    COMMENTS = 1 << 8
    SKIP_COMMENTS = 1 << 9
    GO_TOKENS = (
        IDENTS | INTS | FLOATS | CHARS | STRINGS | RAW_STRINGS | COMMENTS | SKIP_COMMENTS
    )


PARSER_MODE = (
    ScanMode.IDENTS
    | ScanMode.INTS
    | ScanMode.FLOATS
    | ScanMode.STRINGS
    | ScanMode.RAW_STRINGS
    | ScanMode.SKIP_COMMENTS
)


@dataclass(frozen=True)
class Position:
    """A location in the scanned text; line 0 means invalid."""

    offset: int = 0
    line: int = 0
    column: int = 0
    filename: str = ""

    @property
    def is_valid(self) -> bool:
        return self.line > 0

    def __str__(self) -> str:
        name = self.filename or "<input>"
        if self.is_valid:
            return f"{name}:{self.line}:{self.column}"
        return name


class ScannerError(Exception):
    """An error found while scanning, with the position it was found at."""

    def __init__(self, msg: str, pos: Position):
        super().__init__(msg)
        self.msg = msg
        self.pos = pos

    def __str__(self) -> str:
        return f"{self.msg} (at {self.pos})"


ScanResult = Union[Token, str]
ErrorHandler = Callable[["Scanner", str], None]


def _go_quote(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def _is_decimal(ch: str) -> bool:
    return "0" <= ch <= "9" and ch != ""


def _is_hex(ch: str) -> bool:
    return ch != "" and (_is_decimal(ch) or "a" <= ch.lower() <= "f")


def _literal_name(prefix: str) -> str:
    return {
        "x": "hexadecimal literal",
        "o": "octal literal",
        "0": "octal literal",
        "b": "binary literal",
    }.get(prefix, "decimal literal")


class Scanner:
    """Tokenizes a string one token at a time."""

    def __init__(
        self,
        text: str,
        on_error: Optional[ErrorHandler] = None,
        mode: ScanMode = ScanMode.GO_TOKENS,
    ):
        self._src = text
        self._index = 0
        self._tok_start = -1
        self._tok_end = -1
        self.mode = mode
        self.on_error = on_error
        self.whitespace = frozenset(" \t\n\r")
        self.error_count = 0
        self.position = Position()

    # -- character level -------------------------------------------------

    def _ch(self, ahead: int = 0) -> str:
        i = self._index + ahead
        return self._src[i] if i < len(self._src) else ""

    def _position_at(self, offset: int) -> Position:
        line = self._src.count("\n", 0, offset) + 1
        column = offset - (self._src.rfind("\n", 0, offset) + 1) + 1
        return Position(offset=offset, line=line, column=column)

    def pos(self) -> Position:
        """Position immediately after the last character read."""
        return self._position_at(self._index)

    def peek(self) -> str:
        """The next character without consuming it, or '' at the end."""
        return self._ch()

    def next(self) -> str:
        """Consume and return the next character, or '' at the end."""
        self._tok_start = -1
        self.position = replace(self.position, line=0)
        ch = self._ch()
        if ch:
            self._index += 1
        return ch

    def peek_no_space(self) -> str:
        """Like :meth:`peek`, but first consumes any whitespace."""
        while (ch := self.peek()) and ch in self.whitespace:
            self.next()
        return self.peek()

    def token_text(self) -> str:
        """Text of the most recently scanned token."""
        if self._tok_start < 0:
            return ""
        return self._src[self._tok_start : self._tok_end]

    def error(self, message: str) -> None:
        """Report an error through the handler, or raise it."""
        self.error_count += 1
        if self.on_error is not None:
            self.on_error(self, message)
            return
        pos = self.position if self.position.is_valid else self.pos()
        raise ScannerError(message, pos)

    def expect(self, expected: ScanResult, description: str) -> bool:
        """Scan one token, reporting an error unless it is ``expected``."""
        tok = self.scan()
        if tok != expected:
            self.error(f"expected {description}, got {_go_quote(self.token_text())}")
            return False
        return True

    @contextmanager
    def without_numbers(self) -> Iterator["Scanner"]:
        """Temporarily stop recognising integers and floats."""
        old = self.mode
        self.mode = old & ~ScanMode.INTS & ~ScanMode.FLOATS
        try:
            yield self
        finally:
            self.mode = old

    # -- tokens ----------------------------------------------------------

    def scan(self) -> ScanResult:
        """Read the next token and return its kind (or the character itself)."""
        self._tok_start = -1
        self.position = replace(self.position, line=0)
        while True:
            while (ch := self._ch()) and ch in self.whitespace:
                self._index += 1
            start = self._index
            self._tok_start = start
            self.position = self._position_at(start)
            tok: ScanResult = ch
            if ch == "":
                tok = Token.EOF
            elif (ch == "_" or ch.isalpha()) and self.mode & ScanMode.IDENTS:
                self._index += 1
                while (c := self._ch()) and (c == "_" or c.isalpha() or c.isdigit()):
                    self._index += 1
                tok = Token.IDENT
            elif _is_decimal(ch) and self.mode & (ScanMode.INTS | ScanMode.FLOATS):
                tok = self._scan_number(seen_dot=False)
            else:
                self._index += 1
                if ch == '"' and self.mode & ScanMode.STRINGS:
                    self._scan_quoted('"')
                    tok = Token.STRING
                elif ch == "'" and self.mode & ScanMode.CHARS:
                    self._scan_quoted("'")
                    tok = Token.CHAR
                elif ch == "." and self.mode & ScanMode.FLOATS and _is_decimal(self._ch()):
                    tok = self._scan_number(seen_dot=True)
                elif ch == "`" and self.mode & ScanMode.RAW_STRINGS:
                    self._scan_raw()
                    tok = Token.RAW_STRING
                elif ch == "/" and self._ch() in ("/", "*") and self._ch() and self.mode & ScanMode.COMMENTS:
                    self._scan_comment()
                    if self.mode & ScanMode.SKIP_COMMENTS:
                        self._tok_start = -1
                        continue
                    tok = Token.COMMENT
            self._tok_end = self._index
            return tok

    def _digits(self, base: int, invalid: list) -> int:
        seen = 0
        while True:
            ch = self._ch()
            if base <= 10:
                ok = _is_decimal(ch) or ch == "_"
            else:
                ok = _is_hex(ch) or ch == "_"
            if not ok:
                return seen
            if ch == "_":
                seen |= 2
            else:
                seen |= 1
                if base <= 10 and ord(ch) >= ord("0") + base and not invalid:
                    invalid.append(ch)
            self._index += 1

    def _scan_number(self, seen_dot: bool) -> Token:
        base, prefix, seen = 10, "", 0
        invalid: list = []
        tok = Token.INT
        if not seen_dot:
            if self._ch() == "0":
                self._index += 1
                lower = self._ch().lower()
                if lower == "x":
                    self._index += 1
                    base, prefix = 16, "x"
                elif lower == "o":
                    self._index += 1
                    base, prefix = 8, "o"
                elif lower == "b":
                    self._index += 1
                    base, prefix = 2, "b"
                else:
                    base, prefix, seen = 8, "0", 1
            seen |= self._digits(base, invalid)
            if self._ch() == "." and self.mode & ScanMode.FLOATS:
                self._index += 1
                seen_dot = True
        if seen_dot:
            tok = Token.FLOAT
            if prefix in ("o", "b"):
                self.error("invalid radix point in " + _literal_name(prefix))
            seen |= self._digits(base, invalid)
        if not seen & 1:
            self.error(_literal_name(prefix) + " has no digits")
        exp = self._ch().lower()
        if exp in ("e", "p") and exp and self.mode & ScanMode.FLOATS:
            if exp == "e" and prefix not in ("", "0"):
                self.error(f"'{self._ch()}' exponent requires decimal mantissa")
            elif exp == "p" and prefix != "x":
                self.error(f"'{self._ch()}' exponent requires hexadecimal mantissa")
            self._index += 1
            tok = Token.FLOAT
            if self._ch() in ("+", "-") and self._ch():
                self._index += 1
            if not self._digits(10, []) & 1:
                self.error("exponent has no digits")
        elif prefix == "x" and tok is Token.FLOAT:
            self.error("hexadecimal mantissa requires a 'p' exponent")
        if tok is Token.INT and invalid:
            self.error(f"invalid digit '{invalid[0]}' in {_literal_name(prefix)}")
        return tok

    def _scan_quoted(self, quote: str) -> None:
        while (ch := self._ch()) != quote:
            if ch in ("", "\n"):
                self.error("literal not terminated")
                return
            self._index += 2 if ch == "\\" and self._ch(1) not in ("", "\n") else 1
        self._index += 1

    def _scan_raw(self) -> None:
        end = self._src.find("`", self._index)
        if end < 0:
            self._index = len(self._src)
            self.error("literal not terminated")
            return
        self._index = end + 1

    def _scan_comment(self) -> None:
        if self._ch() == "/":
            end = self._src.find("\n", self._index)
            self._index = len(self._src) if end < 0 else end
            return
        end = self._src.find("*/", self._index + 1)
        if end < 0:
            self._index = len(self._src)
            self.error("comment not terminated")
            return
        self._index = end + 2


def parser_scanner(raw: str, on_error: Optional[ErrorHandler]) -> Scanner:
    """A scanner configured for parsing marker definitions and arguments."""
    return Scanner(raw, on_error, PARSER_MODE)