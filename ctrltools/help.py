"""Help texts attached to marker definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class DetailedHelp:
    """A brief summary plus longer details."""

    summary: str = ""
    details: str = ""


@dataclass
class DefinitionHelp:
    """Overall help for a marker definition, plus per-field help.

    ``field_help`` is keyed by output field name; ``deprecated_in_favor_of``
    is None when not deprecated, empty for plain deprecation, or the name of
    the replacement marker.
    """

    detailed: DetailedHelp = field(default_factory=DetailedHelp)
    category: str = ""
    deprecated_in_favor_of: Optional[str] = None
    field_help: Dict[str, DetailedHelp] = field(default_factory=dict)

    def fields_help(self, definition: Any) -> Dict[str, DetailedHelp]:
        """Map per-field help onto the definition's marker argument names."""
        return {
            arg_name: self.field_help.get(field_name, DetailedHelp())
            for arg_name, field_name in definition.field_names.items()
        }


def simple_help(category: str, summary: str) -> DefinitionHelp:
    """Help with only a category and a summary."""
    return DefinitionHelp(detailed=DetailedHelp(summary=summary), category=category)


def deprecated_help(in_favor_of: str, category: str, summary: str) -> DefinitionHelp:
    """Simple help marked as deprecated in favour of another marker."""
    return DefinitionHelp(
        detailed=DetailedHelp(summary=summary),
        category=category,
        deprecated_in_favor_of=in_favor_of,
    )