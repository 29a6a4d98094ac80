"""Patch the schemata of existing CustomResourceDefinition manifests in place.

Existing manifests are read as YAML node trees, so key order and scalar
styles survive the patch.  Only versions that already exist in a manifest
are updated; a version without a new schema has its schema removed.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

CURRENT_APIEXT_VERSION = "apiextensions.k8s.io/v1"

_STR_TAG = "tag:yaml.org,2002:str"
_MAP_TAG = "tag:yaml.org,2002:map"
_OUTPUT_WIDTH = 1 << 30


@dataclass(frozen=True)
class GroupKind:
    """An API group together with a kind."""

    group: str
    kind: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}" if self.group else self.kind


def is_supported_apiext_group_version(group_version: str) -> bool:
    """Whether the group-version is a supported apiextensions version (v1)."""
    return group_version == CURRENT_APIEXT_VERSION


# -- node tree helpers ---------------------------------------------------


def _key_index(mapping: MappingNode, key: str) -> Optional[int]:
    for index, (key_node, _) in enumerate(mapping.value):
        if key_node.value == key:
            return index
    return None


def _closest(root: Node, path: List[str]) -> tuple:
    """Walk ``path`` as deep as it exists; return the last node and the rest."""
    current = root
    rest = list(path)
    while rest:
        if not isinstance(current, MappingNode):
            raise ValueError(f"unexpected non-mapping before path {rest}")
        index = _key_index(current, rest[0])
        if index is None:
            break
        current = current.value[index][1]
        rest.pop(0)
    return current, rest


def _get(root: Node, *path: str) -> Optional[Node]:
    node, rest = _closest(root, list(path))
    return None if rest else node


def _set(root: Node, value: Node, *path: str) -> None:
    parent_path, last = list(path[:-1]), path[-1]
    parent, rest = _closest(root, parent_path)
    if not isinstance(parent, MappingNode):
        raise ValueError(f"unexpected non-mapping before path {rest + [last]}")
    for key in rest:
        child = MappingNode(_MAP_TAG, [], flow_style=False)
        parent.value.append((ScalarNode(_STR_TAG, key, style='"'), child))
        parent = child
    index = _key_index(parent, last)
    if index is None:
        parent.value.append((ScalarNode(_STR_TAG, last, style='"'), value))
    else:
        parent.value[index] = (parent.value[index][0], value)


def _delete(root: Node, *path: str) -> None:
    if not path:
        raise ValueError("must specify a path to delete")
    parent, rest = _closest(root, list(path[:-1]))
    if rest:
        return
    if not isinstance(parent, MappingNode):
        raise ValueError("unexpected non-mapping node")
    index = _key_index(parent, path[-1])
    if index is not None:
        del parent.value[index]


def _clear_style(node: Node) -> None:
    if isinstance(node, ScalarNode):
        node.style = None
    elif isinstance(node, MappingNode):
        node.flow_style = False
        for key, value in node.value:
            _clear_style(key)
            _clear_style(value)
    elif isinstance(node, SequenceNode):
        node.flow_style = False
        for item in node.value:
            _clear_style(item)


def _schema_node(schema: Any) -> Node:
    node = yaml.compose(json.dumps(schema))
    _clear_style(node)
    return node


# -- CRDs ----------------------------------------------------------------


@dataclass(eq=False)
class PartialCRD:
    """The YAML node tree of one CRD manifest and where it came from."""

    yaml: Node
    file_name: str
    crd_version: str

    def versions_node(self) -> Optional[SequenceNode]:
        """The ``spec.versions`` sequence, or None if it is missing."""
        versions = _get(self.yaml, "spec", "versions")
        if versions is None:
            return None
        if not isinstance(versions, SequenceNode):
            raise ValueError("unexpected non-sequence versions")
        return versions

    def set_versioned_schemata(self, new_schemata: Mapping[str, Any]) -> None:
        """Set each listed version's schema and wipe the others' schemata.

        ``spec.validation`` is always removed.  Raises ValueError on a
        malformed manifest.
        """
        _delete(self.yaml, "spec", "validation")
        versions = self.versions_node()
        if versions is None:
            raise ValueError("unexpected missing versions")
        for index, version_node in enumerate(versions.value):
            try:
                name_node = _get(version_node, "name")
            except ValueError:
                name_node = None
            if not isinstance(name_node, ScalarNode) or name_node.tag != _STR_TAG:
                raise ValueError(f"version name was not a string at spec.versions[{index}]")
            name = name_node.value
            if name == "":
                raise ValueError(f"unexpected empty name at spec.versions[{index}]")
            try:
                if name not in new_schemata:
                    _delete(version_node, "schema")
                else:
                    _set(version_node, _schema_node(new_schemata[name]), "schema", "openAPIV3Schema")
            except ValueError as exc:
                raise ValueError(f"spec.versions[{index}]: {exc}") from exc


@dataclass(eq=False)
class PartialCRDSet:
    """All manifests of one group-kind, with the new schemata for it."""

    group_kind: GroupKind
    new_schemata: Dict[str, Any] = field(default_factory=dict)
    crd_versions: List[PartialCRD] = field(default_factory=list)
    versions: Set[str] = field(default_factory=set)

    def apply_new_schemata(self) -> bool:
        """Write the new schemata into every manifest; False if there were none."""
        if not self.new_schemata:
            return False
        self.versions.update(self.new_schemata)
        first = next(iter(self.new_schemata.values()))
        all_same = all(
            version in self.new_schemata and self.new_schemata[version] == first
            for version in self.versions
        )
        what = "global schema" if all_same else "versioned schemas"
        for crd in self.crd_versions:
            try:
                crd.set_versioned_schemata(self.new_schemata)
            except ValueError as exc:
                raise ValueError(f"failed to set {what} for {self.group_kind}: {exc}") from exc
        return True


def _first_document(loader_all: Iterable[Any]) -> Any:
    for document in loader_all:
        return document
    return None


def crds_from_directory(directory: Any) -> Dict[GroupKind, PartialCRDSet]:
    """Load every CRD manifest (``*.yaml``) in a directory, by group-kind.

    Files that are not CRDs, or not valid YAML, are skipped.  Raises
    ValueError for a CRD of an unsupported apiextensions version.
    """
    root = Path(directory)
    result: Dict[GroupKind, PartialCRDSet] = {}
    for path in sorted(root.iterdir(), key=lambda p: p.name):
        if path.is_dir() or path.suffix != ".yaml":
            continue
        raw = path.read_text(encoding="utf-8")
        try:
            document = _first_document(yaml.safe_load_all(raw))
        except yaml.YAMLError:
            continue
        if not isinstance(document, dict):
            continue
        api_version = document.get("apiVersion") or ""
        if not api_version or document.get("kind") != "CustomResourceDefinition":
            continue
        if not is_supported_apiext_group_version(api_version):
            raise ValueError(f'load "{path}": apiVersion "{api_version}" not supported')

        spec = document.get("spec") or {}
        if not isinstance(spec, dict):
            continue
        names = spec.get("names") or {}
        group_kind = GroupKind(
            group=str(spec.get("group") or ""),
            kind=str(names.get("kind") or "") if isinstance(names, dict) else "",
        )
        versions = {
            str(entry.get("name") or "")
            for entry in spec.get("versions") or []
            if isinstance(entry, dict)
        }

        try:
            node = _first_document(yaml.compose_all(raw))
        except yaml.YAMLError:
            continue
        if node is None:
            continue

        crd_set = result.setdefault(group_kind, PartialCRDSet(group_kind=group_kind))
        crd_set.versions.update(versions)
        crd_set.crd_versions.append(PartialCRD(yaml=node, file_name=path.name, crd_version=api_version))
    return result


def _fixed_schema(schema: Any) -> Any:
    schema = copy.deepcopy(schema)
    if isinstance(schema, dict):
        properties = schema.get("properties")
        if isinstance(properties, dict) and "metadata" in properties:
            properties["metadata"] = {"type": "object"}
    return schema


def patch_crds(
    manifests_path: Any,
    schemata: Mapping[GroupKind, Mapping[str, Any]],
    output_dir: Any,
) -> List[Path]:
    """Patch the CRDs in ``manifests_path`` and write them to ``output_dir``.

    ``schemata`` maps a group-kind to new schemata by version.  Only
    versions already present in a manifest are patched, and a top-level
    ``metadata`` property is reduced to ``{"type": "object"}``.  Returns the
    paths written.
    """
    crd_sets = crds_from_directory(manifests_path)
    for group_kind, by_version in schemata.items():
        crd_set = crd_sets.get(group_kind)
        if crd_set is None:
            continue
        for version, schema in by_version.items():
            if version in crd_set.versions:
                crd_set.new_schemata[version] = _fixed_schema(schema)

    for crd_set in crd_sets.values():
        crd_set.apply_new_schemata()

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for crd_set in crd_sets.values():
        for crd in crd_set.crd_versions:
            target = out_dir / crd.file_name
            text = yaml.serialize(crd.yaml, Dumper=yaml.SafeDumper, indent=2, width=_OUTPUT_WIDTH)
            target.write_text(text, encoding="utf-8")
            written.append(target)
    return written