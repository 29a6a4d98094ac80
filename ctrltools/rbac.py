"""RBAC roles generated from ``+kubebuilder:rbac`` markers.

The markers take the form::

    +kubebuilder:rbac:groups=<groups>,resources=<resources>,resourceNames=<names>,verbs=<verbs>,urls=<urls>
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from .definitions import Definition, TargetType, make_definition, marker_field
from .help import DefinitionHelp, DetailedHelp
from .registry import Registry

API_VERSION = "rbac.authorization.k8s.io/v1"


def _optional_list(name: Optional[str] = None) -> Any:
    """An optional list-valued marker field defaulting to an empty list."""
    options = marker_field(name=name, optional=True)
    return field(default_factory=list, metadata=options.metadata)


@dataclass
class Rule:
    """An RBAC rule granting access to resources or non-resource URLs.

    An empty ``namespace`` puts the rule into the generated ClusterRole;
    otherwise it goes into a Role in that namespace.
    """

    groups: List[str] = _optional_list()
    resources: List[str] = _optional_list()
    resource_names: List[str] = _optional_list()
    verbs: List[str] = field(default_factory=list)
    urls: List[str] = _optional_list(name="urls")
    namespace: str = marker_field(optional=True, default="")

    def _key(self) -> Tuple[str, str, str, str]:
        return (
            "&".join(self.groups),
            "&".join(self.resources),
            "&".join(self.resource_names),
            "&".join(self.urls),
        )

    def to_rule(self) -> Dict[str, List[str]]:
        """This rule as a Kubernetes PolicyRule; group "core" becomes ""."""
        groups = ["" if group == "core" else group for group in self.groups]
        policy: Dict[str, List[str]] = {}
        if groups:
            policy["apiGroups"] = groups
        if self.resources:
            policy["resources"] = list(self.resources)
        if self.resource_names:
            policy["resourceNames"] = list(self.resource_names)
        if self.urls:
            policy["nonResourceURLs"] = list(self.urls)
        policy["verbs"] = list(self.verbs)
        return policy


RULE_DEFINITION: Definition = make_definition("kubebuilder:rbac", TargetType.PACKAGE, Rule)

RULE_HELP = DefinitionHelp(
    detailed=DetailedHelp(
        summary="specifies an RBAC rule to all access to some resources or non-resource URLs."
    ),
    category="RBAC",
    field_help={
        "groups": DetailedHelp(summary="specifies the API groups that this rule encompasses."),
        "resources": DetailedHelp(summary="specifies the API resources that this rule encompasses."),
        "resource_names": DetailedHelp(
            summary="specifies the names of the API resources that this rule encompasses.",
            details=(
                "Create requests cannot be restricted by resourcename, as the object's name "
                "is not known at authorization time."
            ),
        ),
        "verbs": DetailedHelp(
            summary="specifies the (lowercase) kubernetes API verbs that this rule encompasses."
        ),
        "urls": DetailedHelp(summary="specifies the non-resource URLs that this rule encompasses."),
        "namespace": DetailedHelp(
            summary="specifies the scope of the Rule.",
            details=(
                "If not set, the Rule belongs to the generated ClusterRole. "
                "If set, the Rule belongs to a Role, whose namespace is specified by this field."
            ),
        ),
    },
)


def _dedup_sorted(values: Iterable[str]) -> List[str]:
    return sorted(set(values))


def _normalized(rule: Rule) -> Rule:
    return dataclasses.replace(
        rule,
        groups=_dedup_sorted(rule.groups),
        resources=_dedup_sorted(rule.resources),
        resource_names=_dedup_sorted(rule.resource_names),
        verbs=_dedup_sorted(rule.verbs),
        urls=_dedup_sorted(rule.urls),
    )


def rules_from_markers(markers: Iterable[str]) -> List[Rule]:
    """Parse RBAC rules from marker comments or bare markers.

    Lines that are not RBAC markers are skipped; a malformed RBAC marker
    raises MarkerParseError.
    """
    registry = Registry()
    registry.register(RULE_DEFINITION)
    rules: List[Rule] = []
    for line in markers:
        text = line.strip()
        if text.startswith("//"):
            text = text[2:].strip()
        if not text.startswith("+"):
            continue
        definition = registry.lookup(text, TargetType.PACKAGE)
        if definition is None:
            continue
        rules.append(definition.parse(text))
    return rules


def _merge_rules(rules: List[Rule]) -> List[Dict[str, List[str]]]:
    """Merge rules with the same key (uniting their verbs) and sort them."""
    merged: Dict[Tuple[str, str, str, str], Rule] = {}
    for rule in rules:
        key = rule._key()
        if key in merged:
            merged[key].verbs = _dedup_sorted(merged[key].verbs + rule.verbs)
        else:
            merged[key] = rule
    ordered = sorted(merged, key=" + ".join)
    return [merged[key].to_rule() for key in ordered]


def generate_roles(rules: Iterable[Rule], role_name: str) -> List[Dict[str, Any]]:
    """Build a ClusterRole and/or namespaced Roles from the rules.

    The result is ordered by namespace, the ClusterRole (empty namespace)
    first, and does not depend on the order of the input rules.
    """
    by_namespace: Dict[str, List[Rule]] = {}
    for rule in rules:
        by_namespace.setdefault(rule.namespace, []).append(_normalized(rule))

    objects: List[Dict[str, Any]] = []
    for namespace in sorted(by_namespace):
        policy_rules = _merge_rules(by_namespace[namespace])
        if not policy_rules:
            continue
        if namespace == "":
            objects.append(
                {
                    "apiVersion": API_VERSION,
                    "kind": "ClusterRole",
                    "metadata": {"name": role_name},
                    "rules": policy_rules,
                }
            )
        else:
            objects.append(
                {
                    "apiVersion": API_VERSION,
                    "kind": "Role",
                    "metadata": {"name": role_name, "namespace": namespace},
                    "rules": policy_rules,
                }
            )
    return objects


def roles_yaml(objects: Iterable[Dict[str, Any]], header_text: str = "", year: str = "") -> str:
    """Render role objects as a YAML stream after a header.

    Every " YEAR" in the header is replaced by the given year.
    """
    header = header_text.replace(" YEAR", " " + year)
    if header and not header.endswith("\n"):
        header += "\n"
    documents = "".join(
        "---\n" + yaml.safe_dump(obj, sort_keys=True, default_flow_style=False)
        for obj in objects
    )
    return header + documents


@dataclass
class Generator:
    """Generates ClusterRole and Role manifests."""

    role_name: str
    header_file: str = marker_field(optional=True, default="")
    year: str = marker_field(optional=True, default="")

    def register_markers(self, registry: Registry) -> None:
        """Register the RBAC rule marker and its help."""
        registry.register(RULE_DEFINITION)
        registry.add_help(RULE_DEFINITION, RULE_HELP)

    def generate(self, rules: Iterable[Rule], output_dir: Any) -> Optional[Path]:
        """Write ``role.yaml`` into ``output_dir``; None when there is nothing to write."""
        objects = generate_roles(rules, self.role_name)
        if not objects:
            return None
        header_text = ""
        if self.header_file:
            header_text = Path(self.header_file).read_text(encoding="utf-8")
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / "role.yaml"
        path.write_text(roles_yaml(objects, header_text, self.year), encoding="utf-8")
        return path