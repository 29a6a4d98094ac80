"""Marker definitions: how a marker's name and arguments map to a value."""

from __future__ import annotations

import ast
import builtins
import dataclasses
import enum
import json
import types
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .arguments import Argument, ArgumentType, RawArguments, argument_from_type
from .scanner import Scanner, ScannerError, Token, parser_scanner

_MARKER_META = "marker"

_BASE_NAMESPACE: Dict[str, Any] = {
    "Any": Any,
    "List": List,
    "Dict": Dict,
    "Optional": Optional,
    "Union": typing.Union,
    "typing": typing,
    "builtins": builtins,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "list": list,
    "dict": dict,
    "object": object,
    "RawArguments": RawArguments,
}


class TargetType(enum.IntEnum):
    """Which kind of node a marker is associated with."""

    PACKAGE = 0
    TYPE = 1
    FIELD = 2

    def __str__(self) -> str:
        return self.name.lower()

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


class MarkerParseError(ValueError):
    """Parsing a marker failed; ``errors`` lists every problem found.

    ``value`` holds whatever could be built from the marker anyway.
    """

    def __init__(self, errors: List[ScannerError], value: Any = None):
        self.errors = list(errors)
        self.value = value
        super().__init__("\n".join(str(err) for err in self.errors))


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def marker_field(*, name: Optional[str] = None, optional: bool = False, default: Any = dataclasses.MISSING) -> Any:
    """A dataclass field carrying marker options.

    ``name`` overrides the argument name derived from the field name, and
    ``optional`` marks the argument as not required.
    """
    metadata = {_MARKER_META: {"name": name, "optional": optional}}
    if default is dataclasses.MISSING:
        return field(metadata=metadata)
    return field(default=default, metadata=metadata)


def _lower_camel_case(field_name: str) -> str:
    parts = [part for part in field_name.rstrip("_").split("_") if part]
    if not parts:
        return field_name
    first = parts[0][:1].lower() + parts[0][1:]
    return first + "".join(part[:1].upper() + part[1:] for part in parts[1:])


def _argument_info(dc_field: dataclasses.Field) -> Tuple[str, bool]:
    """The marker argument name and the optional flag for a dataclass field."""
    tag = dc_field.metadata.get(_MARKER_META, {})
    arg_name = tag.get("name") or _lower_camel_case(dc_field.name)
    return arg_name, bool(tag.get("optional", False))


def _is_struct(output: Any) -> bool:
    return isinstance(output, type) and dataclasses.is_dataclass(output)


def _init_fields(output: type) -> Dict[str, dataclasses.Field]:
    return {f.name: f for f in dataclasses.fields(output) if f.init}


def _namespace_for(output: type) -> Dict[str, Any]:
    """Names visible to the annotations of a dataclass."""
    module_names = getattr(getattr(output, "__init__", None), "__globals__", {}) or {}
    return {**_BASE_NAMESPACE, **module_names, output.__name__: output}


def _resolve_node(node: ast.AST, namespace: Dict[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        if node.value is None:
            return None
        if isinstance(node.value, str):
            return _resolve_annotation(node.value, namespace)
        raise TypeError(f"unsupported annotation constant {node.value!r}")
    if isinstance(node, ast.Name):
        if node.id == "None":
            return None
        if node.id not in namespace:
            raise TypeError(f"cannot resolve annotation name {_quote(node.id)}")
        return namespace[node.id]
    if isinstance(node, ast.Attribute):
        base = _resolve_node(node.value, namespace)
        try:
            return getattr(base, node.attr)
        except AttributeError as exc:
            raise TypeError(f"cannot resolve annotation attribute {_quote(node.attr)}") from exc
    if isinstance(node, ast.Subscript):
        base = _resolve_node(node.value, namespace)
        index = node.slice
        if isinstance(index, ast.Tuple):
            args = tuple(_resolve_node(elt, namespace) for elt in index.elts)
            return base[args]
        return base[_resolve_node(index, namespace)]
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        left = _resolve_node(node.left, namespace)
        right = _resolve_node(node.right, namespace)
        return typing.Union[left, right]
    raise TypeError(f"unsupported annotation {ast.dump(node)}")


def _resolve_annotation(annotation: Any, namespace: Dict[str, Any]) -> Any:
    """Turn a string annotation into the type it names."""
    if not isinstance(annotation, str):
        return annotation
    try:
        tree = ast.parse(annotation, mode="eval")
    except SyntaxError as exc:
        raise TypeError(f"invalid annotation {_quote(annotation)}") from exc
    return _resolve_node(tree.body, namespace)


def _field_types(output: type) -> Dict[str, Any]:
    """Resolved annotations of the init fields of a dataclass."""
    namespace = _namespace_for(output)
    return {name: _resolve_annotation(f.type, namespace) for name, f in _init_fields(output).items()}


def _zero(annotation: Any) -> Any:
    """The value an unset argument of this type takes."""
    if annotation is Any or annotation is object:
        return None
    origin = typing.get_origin(annotation)
    if origin is list:
        return []
    if origin is dict:
        return {}
    if origin is typing.Union or origin is types.UnionType:
        return None
    if isinstance(annotation, type):
        if issubclass(annotation, (str, int, float)):
            return annotation()
        if _is_struct(annotation):
            try:
                return annotation()
            except TypeError:
                return None
    return None


def _cast(annotation: Any, value: Any) -> Any:
    """Convert a parsed value to a named scalar type where needed."""
    if value is None or not isinstance(annotation, type):
        return value
    if issubclass(annotation, (str, int, float)) and type(value) is not annotation:
        try:
            return annotation(value)
        except (TypeError, ValueError):
            return value
    return value


@dataclass(eq=False)
class Definition:
    """A marker's name, target and the shape of its output.

    ``fields`` maps argument names (as written in markers) to their types;
    ``field_names`` maps the same names to output field names.  A
    non-dataclass output has a single field named "".
    """

    name: str
    target: TargetType
    output: Any
    fields: Dict[str, Argument] = field(default_factory=dict)
    field_names: Dict[str, str] = field(default_factory=dict)
    strict: bool = True

    def anonymous_field(self) -> bool:
        """Whether the only field is the unnamed one."""
        return len(self.fields) == 1 and "" in self.fields

    def empty(self) -> bool:
        """Whether this definition takes no arguments."""
        return not self.fields

    def _load_fields(self) -> None:
        if not _is_struct(self.output):
            self.fields[""] = argument_from_type(self.output)
            self.field_names[""] = ""
            return
        namespace = _namespace_for(self.output)
        for dc_field in dataclasses.fields(self.output):
            if dc_field.name.startswith("_") or not dc_field.init:
                continue
            arg_name, optional = _argument_info(dc_field)
            try:
                arg = argument_from_type(_resolve_annotation(dc_field.type, namespace))
            except TypeError as exc:
                raise TypeError(
                    f"unable to extract type information for field {_quote(dc_field.name)}: {exc}"
                ) from exc
            if arg.type is ArgumentType.RAW:
                raise TypeError("RawArguments must be the direct type of a marker, and not a field")
            arg.optional = optional or arg.optional
            self.fields[arg_name] = arg
            self.field_names[arg_name] = dc_field.name

    def _build(self, values: Dict[str, Any]) -> Any:
        if not _is_struct(self.output):
            if "" in values:
                return _cast(self.output, values[""])
            return _zero(self.output)
        hints = _field_types(self.output)
        kwargs = {}
        for name, dc_field in _init_fields(self.output).items():
            if name in values:
                kwargs[name] = _cast(hints.get(name), values[name])
            elif dc_field.default is dataclasses.MISSING and dc_field.default_factory is dataclasses.MISSING:
                kwargs[name] = _zero(hints.get(name))
        return self.output(**kwargs)

    def _settable(self, field_name: str) -> bool:
        return _is_struct(self.output) and field_name in _init_fields(self.output)

    def parse(self, raw_marker: str) -> Any:
        """Parse a marker of the form ``+a:b:c=arg,d=arg`` into the output type.

        Raises MarkerParseError if anything is wrong with the marker.
        """
        name, anon_name, fields_text = split_marker(raw_marker)
        if not self.anonymous_field() and not self.empty() and len(anon_name) >= len(name) + 1:
            fields_text = anon_name[len(name) + 1 :] + "=" + fields_text

        errors: List[ScannerError] = []

        def on_error(scanner: Scanner, message: str) -> None:
            errors.append(ScannerError(message, scanner.position))

        scanner = parser_scanner(fields_text, on_error)
        values: Dict[str, Any] = {}
        seen = set()

        if self.anonymous_field() and scanner.peek() != "":
            target = self.field_names.get("", "")
            if target and not self._settable(target):
                scanner.error(f"cannot set field {_quote(target)} (might not exist)")
                raise MarkerParseError(errors, self._build(values))
            values[target] = self.fields[""].parse(scanner, fields_text)
            seen.add("")
        elif not self.empty() and scanner.peek() != "":
            self._parse_named_arguments(scanner, fields_text, values, seen, errors)

        if scanner.scan() is not Token.EOF:
            scanner.error(f"extra arguments provided: {_quote(fields_text[scanner.position.offset:])}")

        if self.strict:
            for arg_name, arg in self.fields.items():
                if arg_name not in seen and not arg.optional:
                    scanner.error(f"missing argument {_quote(arg_name)}")

        value = self._build(values)
        if errors:
            raise MarkerParseError(errors, value)
        return value

    def _parse_named_arguments(
        self,
        scanner: Scanner,
        fields_text: str,
        values: Dict[str, Any],
        seen: set,
        errors: List[ScannerError],
    ) -> None:
        while True:
            if not scanner.expect(Token.IDENT, "argument name"):
                return
            arg_name = scanner.token_text()
            if not scanner.expect("=", "equals"):
                return
            field_name = self.field_names.get(arg_name)
            arg = self.fields.get(arg_name)
            if field_name is None or arg is None:
                scanner.error(f"unknown argument {_quote(arg_name)}")
                return
            seen.add(arg_name)
            if not self._settable(field_name):
                scanner.error(f"cannot set field {_quote(field_name)} (might not exist)")
                return
            values[field_name] = arg.parse(scanner, fields_text)
            if errors:
                return
            if scanner.peek() == "":
                return
            if not scanner.expect(",", "comma"):
                return


def make_definition(name: str, target: TargetType, output: Any) -> Definition:
    """Build a strict definition for the given output type.

    A dataclass output gets one argument per public field; any other type
    gets a single unnamed argument.  Raises TypeError for unsupported types.
    """
    definition = Definition(name=name, target=target, output=output)
    definition._load_fields()
    return definition


def make_any_type_definition(name: str, target: TargetType, output: Any) -> Definition:
    """A definition whose single unnamed argument fills the ``value`` field."""
    definition = make_definition(name, target, output)
    definition.field_names = {"": "value"}
    definition.fields = {"": definition.fields.get("value", Argument())}
    return definition


def split_marker(raw: str) -> Tuple[str, str, str]:
    """Split ``+a:b:c=arg,d=arg`` into ``a:b``, ``a:b:c`` and ``arg,d=arg``."""
    raw = raw[1:]
    head, sep, rest = raw.partition("=")
    if not sep:
        return head, head, ""
    parts = head.split(":")
    name = ":".join(parts[:-1]) if len(parts) > 1 else head
    return name, head, rest