"""Scaffolding for new Kubernetes API object types."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, TextIO

_UNCOUNTABLE = frozenset(
    {
        "data",
        "deer",
        "equipment",
        "fish",
        "information",
        "media",
        "metadata",
        "money",
        "news",
        "rice",
        "series",
        "sheep",
        "species",
    }
)

_IRREGULAR = {
    "analysis": "analyses",
    "child": "children",
    "criterion": "criteria",
    "foot": "feet",
    "goose": "geese",
    "half": "halves",
    "index": "indices",
    "knife": "knives",
    "leaf": "leaves",
    "life": "lives",
    "man": "men",
    "matrix": "matrices",
    "mouse": "mice",
    "ox": "oxen",
    "person": "people",
    "quiz": "quizzes",
    "tooth": "teeth",
    "vertex": "vertices",
    "wife": "wives",
    "woman": "women",
}

_ACRONYMS = frozenset(
    {
        "API",
        "ASCII",
        "CPU",
        "CSS",
        "DNS",
        "HTML",
        "HTTP",
        "HTTPS",
        "ID",
        "IP",
        "JSON",
        "LHS",
        "RHS",
        "SQL",
        "SSH",
        "TCP",
        "TLS",
        "UDP",
        "UI",
        "URI",
        "URL",
        "UUID",
        "XML",
        "YAML",
    }
)

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")
_VOWELS = frozenset("aeiou")


def pluralize(word: str) -> str:
    """The English plural of a word."""
    if not word:
        return word
    lower = word.lower()
    if lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR:
        plural = _IRREGULAR[lower]
    elif lower.endswith("y") and len(lower) > 1 and lower[-2] not in _VOWELS:
        plural = lower[:-1] + "ies"
    elif lower.endswith(("s", "x", "z", "ch", "sh")):
        plural = lower + "es"
    else:
        plural = lower + "s"
    if word == lower:
        return plural
    return word[: len(word) - len(lower)] + plural if False else (
        plural[:1].upper() + plural[1:] if word[:1].isupper() else plural
    )


def pascalize(word: str) -> str:
    """The PascalCase form of a word, with well-known acronyms upper-cased."""
    parts = []
    for part in _WORD_RE.findall(word):
        if part.upper() in _ACRONYMS:
            parts.append(part.upper())
        else:
            parts.append(part[:1].upper() + part[1:].lower())
    return "".join(parts)


@dataclass
class Resource:
    """The information needed to scaffold a resource."""

    kind: str = ""
    resource: str = ""
    namespaced: bool = False

    def validate(self) -> None:
        """Check the values, filling in the resource name from the kind.

        Raises ValueError if the kind is empty or not PascalCase.
        """
        if not self.kind:
            raise ValueError("kind cannot be empty")
        if not self.resource:
            self.resource = pluralize(self.kind.lower())
        expected = pascalize(self.kind)
        if self.kind != expected:
            raise ValueError(f"Kind must be camelcase (expected {expected} was {self.kind})")


@dataclass
class ScaffoldOptions:
    """How to scaffold a Kubernetes object type."""

    resource: Resource = field(default_factory=Resource)
    additional_help: str = ""
    generate_clients: bool = False

    def validate(self) -> None:
        """Validate the options; raises ValueError if anything is invalid."""
        self.resource.validate()

    def _help_lines(self) -> str:
        if not self.additional_help:
            return ""
        return "".join(f"\n\t// {line}" for line in self.additional_help.split("\n"))

    def _render(self) -> str:
        kind = self.resource.kind
        help_lines = self._help_lines()
        parts: List[str] = [
            f"// {kind}Spec defines the desired state of {kind}\n",
            f"type {kind}Spec struct {{\n",
            "\t// INSERT ADDITIONAL SPEC FIELDS -- desired state of cluster",
            help_lines,
            "\n}\n\n",
            f"// {kind}Status defines the observed state of {kind}.\n",
            "// It should always be reconstructable from the state of the cluster and/or outside world.\n",
            f"type {kind}Status struct {{\n",
            "\t// INSERT ADDITIONAL STATUS FIELDS -- observed state of cluster",
            help_lines,
            "\n}\n\n",
            "// +k8s:deepcopy-gen:interfaces=k8s.io/apimachinery/pkg/runtime.Object",
        ]
        if self.generate_clients:
            parts.append("\n// +genclient")
            if not self.resource.namespaced:
                parts.append("\n// +genclient:nonNamespaced")
        parts += [
            "\n\n",
            f"// {kind} is the Schema for the {self.resource.resource} API\n",
            "// +k8s:openapi-gen=true\n",
            f"type {kind} struct {{\n",
            '\tmetav1.TypeMeta   `json:",inline"`\n',
            '\tmetav1.ObjectMeta `json:"metadata,omitempty"`\n',
            "\n",
            f'\tSpec   {kind}Spec   `json:"spec,omitempty"`\n',
            f'\tStatus {kind}Status `json:"status,omitempty"`\n',
            "}\n\n",
            "// +k8s:deepcopy-gen:interfaces=k8s.io/apimachinery/pkg/runtime.Object",
        ]
        if self.generate_clients and not self.resource.namespaced:
            parts.append("\n// +genclient:nonNamespaced")
        parts += [
            "\n\n",
            f"// {kind}List contains a list of {kind}\n",
            f"type {kind}List struct {{\n",
            '\tmetav1.TypeMeta `json:",inline"`\n',
            '\tmetav1.ListMeta `json:"metadata,omitempty"`\n',
            f'\tItems           []{kind} `json:"items"`\n',
            "}\n",
        ]
        return "".join(parts)

    def scaffold(self, out: TextIO) -> None:
        """Write the object scaffolding to ``out``."""
        out.write(self._render())