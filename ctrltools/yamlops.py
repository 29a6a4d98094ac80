"""In-place edits of YAML node trees that keep ordering and styles."""

from __future__ import annotations

import json
from typing import Any, Optional, Tuple

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

_STR_TAG = "tag:yaml.org,2002:str"
_MAP_TAG = "tag:yaml.org,2002:map"
_NULL_TAG = "tag:yaml.org,2002:null"


def to_yaml(obj: Any) -> Node:
    """Convert a JSON-serialisable object into a YAML node tree."""
    if obj is None:
        return ScalarNode(_NULL_TAG, "null")
    try:
        raw = json.dumps(obj)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"failed to marshal object: {exc}") from exc
    return load_node(raw)


def load_node(text: str) -> Node:
    """Compose YAML text into a node tree (a null scalar for empty input)."""
    node = yaml.compose(text)
    return node if node is not None else ScalarNode(_NULL_TAG, "null")


def dump_node(node: Optional[Node]) -> str:
    """Serialise a node tree back to YAML text."""
    return yaml.serialize(node if node is not None else to_yaml(None))


def set_style(root: Node, style: Optional[str]) -> None:
    """Set the scalar style on every node; collections lose flow style."""
    if isinstance(root, ScalarNode):
        root.style = style
        return
    root.flow_style = None if style is None else False
    if isinstance(root, MappingNode):
        for key, value in root.value:
            set_style(key, style)
            set_style(value, style)
    elif isinstance(root, SequenceNode):
        for child in root.value:
            set_style(child, style)


def value_in_mapping(root: Node, key: str) -> Optional[Node]:
    """The value for a string key in a mapping node, or None if absent."""
    if not isinstance(root, MappingNode):
        raise ValueError("unexpected non-mapping node")
    for key_node, value_node in root.value:
        if key_node.value == key:
            return value_node
    return None


def _as_close_as_possible(root: Optional[Node], path: Tuple[str, ...]) -> Tuple[Optional[Node], Tuple[str, ...]]:
    if root is None:
        return None, path
    current = root
    while path:
        if not isinstance(current, MappingNode):
            raise ValueError(f"unexpected non-mapping ({current.id}) before path {list(path)}")
        nxt = value_in_mapping(current, path[0])
        if nxt is None:
            break
        current = nxt
        path = path[1:]
    return current, path


def get_node(root: Optional[Node], *path: str) -> Optional[Node]:
    """The node at the given path, or None if it does not exist."""
    node, rest = _as_close_as_possible(root, path)
    return None if rest else node


def set_node(root: Node, value: Node, *path: str) -> Node:
    """Set the node at ``path``, creating mappings on the way.

    Returns the root, which is ``value`` itself when the path is empty.
    """
    if not path:
        return value
    if root is None:
        raise ValueError(f"unexpected non-mapping before path {list(path)}")
    current = root
    for depth, key in enumerate(path):
        if not isinstance(current, MappingNode):
            raise ValueError(f"unexpected non-mapping before path {list(path[depth:])}")
        last = depth == len(path) - 1
        for index, (key_node, value_node) in enumerate(current.value):
            if key_node.value == key:
                if last:
                    current.value[index] = (key_node, value)
                    return root
                current = value_node
                break
        else:
            for missing in path[depth:-1]:
                child = MappingNode(_MAP_TAG, [])
                current.value.append((ScalarNode(_STR_TAG, missing, style='"'), child))
                current = child
            current.value.append((ScalarNode(_STR_TAG, path[-1], style='"'), value))
            return root
    return root


def delete_node(root: Node, *path: str) -> None:
    """Delete the node at ``path``; nothing happens if it does not exist."""
    if not path:
        raise ValueError("must specify a path to delete")
    parent, rest = _as_close_as_possible(root, path[:-1])
    if rest or parent is None:
        return
    if not isinstance(parent, MappingNode):
        raise ValueError("unexpected non-mapping node")
    for index, (key_node, _value) in enumerate(parent.value):
        if key_node.value == path[-1]:
            del parent.value[index]
            return