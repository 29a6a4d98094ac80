"""Typed marker arguments and the parsing of their values."""

from __future__ import annotations

import enum
import json
import re
import types
import typing
from dataclasses import dataclass
from typing import Any, Optional

from .scanner import Scanner, Token, parser_scanner


class RawArguments(str):
    """All the raw, unparsed argument text of a marker.

    Use it only as the direct output type of legacy markers that do not
    follow the normal argument syntax; it is not valid as a field type.
    """


class ArgumentType(enum.IntEnum):
    """The kind of a marker argument."""

    INVALID = 0
    INT = 1
    NUMBER = 2
    STRING = 3
    BOOL = 4
    ANY = 5
    SLICE = 6
    MAP = 7
    RAW = 8


_SCALAR_NAMES = {
    ArgumentType.INVALID: "<invalid>",
    ArgumentType.INT: "int",
    ArgumentType.NUMBER: "float64",
    ArgumentType.STRING: "string",
    ArgumentType.BOOL: "bool",
    ArgumentType.ANY: "<any>",
    ArgumentType.RAW: "<raw>",
}

_BARE_STRING_STOPS = (",", ";", ":", "}", "")
_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_INT_MIN = -(1 << 63)
_INT_MAX = (1 << 63) - 1
_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    '"': '"',
}
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _quoted(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _unquote(text: str) -> str:
    """Decode a double-quoted or back-quoted string literal."""
    if len(text) < 2 or text[0] != text[-1]:
        raise ValueError("invalid syntax")
    quote, body = text[0], text[1:-1]
    if quote == "`":
        if "`" in body:
            raise ValueError("invalid syntax")
        return body.replace("\r", "")
    if quote != '"':
        raise ValueError("invalid syntax")

    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch in ('"', "\n"):
            raise ValueError("invalid syntax")
        if ch != "\\":
            out += ch.encode("utf-8", "surrogateescape")
            i += 1
            continue
        if i + 1 >= len(body):
            raise ValueError("invalid syntax")
        esc = body[i + 1]
        i += 2
        if esc in _SIMPLE_ESCAPES:
            out += _SIMPLE_ESCAPES[esc].encode()
        elif esc in ("x", "u", "U"):
            width = {"x": 2, "u": 4, "U": 8}[esc]
            digits = body[i : i + width]
            if len(digits) < width or not set(digits) <= _HEX_DIGITS:
                raise ValueError("invalid syntax")
            i += width
            value = int(digits, 16)
            if esc == "x":
                out.append(value)
            else:
                if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
                    raise ValueError("invalid syntax")
                out += chr(value).encode("utf-8")
        elif esc in "01234567":
            digits = body[i - 1 : i + 2]
            if len(digits) < 3 or any(d not in "01234567" for d in digits):
                raise ValueError("invalid syntax")
            i += 2
            value = int(digits, 8)
            if value > 255:
                raise ValueError("invalid syntax")
            out.append(value)
        else:
            raise ValueError("invalid syntax")
    return out.decode("utf-8", "surrogateescape")


def _guessed_item_problem(item: "Argument", allow_any: bool) -> Optional[str]:
    """Why a guessed collection with this item type cannot be built, if it can't."""
    kind = item.type
    if kind in (ArgumentType.INT, ArgumentType.NUMBER, ArgumentType.STRING, ArgumentType.BOOL):
        return None
    if kind is ArgumentType.SLICE and item.item_type is not None:
        return _guessed_item_problem(item.item_type, allow_any=False)
    if kind is ArgumentType.MAP and item.item_type is not None:
        return _guessed_item_problem(item.item_type, allow_any=True)
    if kind is ArgumentType.ANY and allow_any:
        return None
    return f"invalid type when constructing guessed slice out: {int(kind)}"


@dataclass
class Argument:
    """The type of a marker argument.

    ``item_type`` describes slice items and map values.  ``pointer`` records
    that the declared type was optional (and always implies ``optional``).
    """

    type: ArgumentType = ArgumentType.INVALID
    optional: bool = False
    pointer: bool = False
    item_type: Optional["Argument"] = None

    def type_string(self) -> str:
        """A readable, roughly Go-like name for this argument's type."""
        prefix = "*" if self.pointer else ""
        if self.type is ArgumentType.SLICE:
            return prefix + "[]" + self._item().type_string()
        if self.type is ArgumentType.MAP:
            return prefix + "map[string]" + self._item().type_string()
        return prefix + _SCALAR_NAMES[self.type]

    def __str__(self) -> str:
        if self.optional:
            return f"<optional arg {self.type_string()}>"
        return f"<arg {self.type_string()}>"

    def _item(self) -> "Argument":
        return self.item_type if self.item_type is not None else Argument()

    def parse(self, scanner: Scanner, raw: str) -> Any:
        """Consume this argument from the scanner and return its value.

        ``raw`` is the text the scanner reads from.  Errors go to the
        scanner's error handler; the value is then None.
        """
        return self._parse(scanner, raw, in_slice=False)

    def _parse(self, scanner: Scanner, raw: str, in_slice: bool) -> Any:
        kind = self.type
        if kind is ArgumentType.INVALID:
            scanner.error("cannot parse invalid type")
            return None
        if kind is ArgumentType.RAW:
            value = RawArguments(raw[scanner.pos().offset :])
            while scanner.scan() is not Token.EOF:
                pass
            return value
        if kind is ArgumentType.NUMBER:
            return self._parse_number(scanner)
        if kind is ArgumentType.INT:
            return self._parse_int(scanner)
        if kind is ArgumentType.STRING:
            return self._parse_string(scanner, raw)
        if kind is ArgumentType.BOOL:
            if not scanner.expect(Token.IDENT, "true or false"):
                return None
            text = scanner.token_text()
            if text == "true":
                return True
            if text == "false":
                return False
            scanner.error(f"expected true or false, got {_quoted(text)}")
            return None
        if kind is ArgumentType.ANY:
            guessed = guess_type(scanner, raw, not in_slice)
            if guessed.type in (ArgumentType.SLICE, ArgumentType.MAP):
                problem = _guessed_item_problem(
                    guessed._item(), allow_any=guessed.type is ArgumentType.MAP
                )
                if problem:
                    scanner.error(problem)
                    return None
            return guessed.parse(scanner, raw)
        if kind is ArgumentType.SLICE:
            return self._parse_slice(scanner, raw)
        if kind is ArgumentType.MAP:
            return self._parse_map(scanner, raw)
        return None

    @staticmethod
    def _signed_token(scanner: Scanner) -> bool:
        if scanner.peek() == "-":
            scanner.scan()
            return True
        return False

    def _parse_number(self, scanner: Scanner) -> Optional[float]:
        negative = self._signed_token(scanner)
        tok = scanner.scan()
        if tok not in (Token.FLOAT, Token.INT):
            scanner.error(f"expected integer or float, got {_quoted(scanner.token_text())}")
            return None
        text = ("-" if negative else "") + scanner.token_text()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            return float.fromhex(text)
        except ValueError:
            scanner.error(
                f"unable to parse number: strconv.ParseFloat: parsing {_quoted(text)}: invalid syntax"
            )
            return None

    def _parse_int(self, scanner: Scanner) -> Optional[int]:
        negative = self._signed_token(scanner)
        if not scanner.expect(Token.INT, "integer"):
            return None
        text = ("-" if negative else "") + scanner.token_text()
        if not _INT_RE.match(text):
            scanner.error(
                f"unable to parse integer: strconv.Atoi: parsing {_quoted(text)}: invalid syntax"
            )
            return None
        value = int(text)
        if not _INT_MIN <= value <= _INT_MAX:
            scanner.error(
                f"unable to parse integer: strconv.Atoi: parsing {_quoted(text)}: value out of range"
            )
            return None
        return value

    def _parse_string(self, scanner: Scanner, raw: str) -> Optional[str]:
        """Parse a quoted string, or bare tokens up to a separator."""
        with scanner.without_numbers():
            tok = scanner.scan()
            if tok in (Token.STRING, Token.RAW_STRING):
                try:
                    return _unquote(scanner.token_text())
                except ValueError as exc:
                    scanner.error(f"unable to parse string: {exc}")
                    return None
            start = scanner.position.offset
            while scanner.peek_no_space() not in _BARE_STRING_STOPS:
                scanner.scan()
            end = scanner.position.offset + len(scanner.token_text())
            return raw[start:end]

    def _parse_slice(self, scanner: Scanner, raw: str) -> Optional[list]:
        item = self._item()
        result = []
        if scanner.peek_no_space() == "{":
            scanner.scan()
            while scanner.peek_no_space() not in ("}", ""):
                result.append(item._parse(scanner, raw, in_slice=True))
                if scanner.peek_no_space() == "}":
                    break
                if not scanner.expect(",", "comma"):
                    return None
            if not scanner.expect("}", "close curly brace"):
                return None
            return result

        while scanner.peek_no_space() not in (",", "}", ""):
            result.append(item._parse(scanner, raw, in_slice=True))
            separator = scanner.peek_no_space()
            if separator in (",", "}", ""):
                break
            scanner.scan()
            if separator != ";":
                scanner.error(f"expected comma, got {_quoted(scanner.token_text())}")
                return None
        return result

    def _parse_map(self, scanner: Scanner, raw: str) -> Optional[dict]:
        item = self._item()
        result = {}
        if not scanner.expect("{", "open curly brace"):
            return None
        while scanner.peek_no_space() not in ("}", ""):
            key = self._parse_string(scanner, raw)
            if not scanner.expect(":", "colon"):
                return None
            result[key] = item._parse(scanner, raw, in_slice=False)
            if scanner.peek_no_space() == "}":
                break
            if not scanner.expect(",", "comma"):
                return None
        if not scanner.expect("}", "close curly brace"):
            return None
        return result


def guess_type(scanner: Scanner, raw: str, allow_slice: bool) -> Argument:
    """Guess the type of the next value without consuming anything.

    Slices are only guessed when ``allow_slice`` is true.  Maps always get
    ``ANY`` values.
    """
    if allow_slice:
        maybe_item = guess_type(scanner, raw, False)
        sub = parser_scanner(raw[scanner.pos().offset :], scanner.on_error)
        while (tok := sub.scan()) not in (",", ";", Token.EOF):
            pass
        if tok == ";":
            return Argument(type=ArgumentType.SLICE, item_type=maybe_item)
        return maybe_item

    sub_raw = raw[scanner.pos().offset :]
    sub = parser_scanner(sub_raw, scanner.on_error)
    hint = sub.peek_no_space()

    if hint in ('"', "'", "`") and hint:
        return Argument(type=ArgumentType.STRING)

    if hint == "{":
        sub.scan()
        first = guess_type(sub, sub_raw, False)
        if first.type is ArgumentType.STRING:
            Argument(type=ArgumentType.STRING)._parse_string(sub, sub_raw)
            if sub.scan() == ":":
                return Argument(type=ArgumentType.MAP, item_type=Argument(type=ArgumentType.ANY))
        return Argument(type=ArgumentType.SLICE, item_type=first)

    probably_string = False
    if hint in ("t", "f") and hint:
        if sub.scan() is Token.IDENT:
            if sub.token_text() in ("true", "false"):
                return Argument(type=ArgumentType.BOOL)
            probably_string = True
        else:
            scanner.error(
                f"got a token ({_quoted(scanner.token_text())}) that looked like an ident, but was not"
            )
            return Argument(type=ArgumentType.INVALID)

    if not probably_string:
        tok = sub.scan()
        if tok == "-":
            tok = sub.scan()
        if tok is Token.INT:
            return Argument(type=ArgumentType.INT)
        if tok is Token.FLOAT:
            return Argument(type=ArgumentType.NUMBER)

    return Argument(type=ArgumentType.STRING)


def _type_name(raw_type: Any) -> str:
    return getattr(raw_type, "__name__", repr(raw_type))


def _optional_inner(raw_type: Any) -> Any:
    """The X of Optional[X] (or X | None), else None."""
    origin = typing.get_origin(raw_type)
    if origin is not typing.Union and origin is not types.UnionType:
        return None
    args = typing.get_args(raw_type)
    rest = [arg for arg in args if arg is not type(None)]
    if len(rest) == 1 and len(args) == 2:
        return rest[0]
    return None


def argument_from_type(raw_type: Any) -> Argument:
    """Build an Argument from a Python type annotation.

    Supports str, int, float, bool, list[X], dict[str, X], Optional[X],
    typing.Any (or object) and RawArguments.  Raises TypeError otherwise.
    """
    if raw_type is RawArguments:
        return Argument(type=ArgumentType.RAW)
    if raw_type is Any or raw_type is object:
        return Argument(type=ArgumentType.ANY)

    arg = Argument()
    inner = _optional_inner(raw_type)
    if inner is not None:
        raw_type = inner
        arg.pointer = True
        arg.optional = True

    origin = typing.get_origin(raw_type)
    args = typing.get_args(raw_type)
    if origin is list and len(args) == 1:
        try:
            item = argument_from_type(args[0])
        except TypeError as exc:
            raise TypeError(f"bad slice item type: {exc}") from exc
        arg.type = ArgumentType.SLICE
        arg.item_type = item
    elif origin is dict and len(args) == 2:
        key_type, value_type = args
        if not (isinstance(key_type, type) and issubclass(key_type, str)):
            raise TypeError("bad map key type: map keys must be strings")
        try:
            item = argument_from_type(value_type)
        except TypeError as exc:
            raise TypeError(f"bad slice item type: {exc}") from exc
        arg.type = ArgumentType.MAP
        arg.item_type = item
    elif origin is None and isinstance(raw_type, type):
        if issubclass(raw_type, bool):
            arg.type = ArgumentType.BOOL
        elif issubclass(raw_type, int):
            arg.type = ArgumentType.INT
        elif issubclass(raw_type, float):
            arg.type = ArgumentType.NUMBER
        elif issubclass(raw_type, str):
            arg.type = ArgumentType.STRING
        else:
            raise TypeError(f"type has unsupported kind {_type_name(raw_type)}")
    else:
        raise TypeError(f"type has unsupported kind {_type_name(raw_type)}")
    return arg