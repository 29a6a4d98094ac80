"""A thread-safe registry of marker definitions."""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from .definitions import Definition, TargetType, make_definition, split_marker
from .help import DefinitionHelp


def _try_anon_lookup(name: str, definitions: Dict[str, Definition]) -> Optional[Definition]:
    """Look a marker up by its full name first, then by its struct name."""
    struct_name, anon_name, _ = split_marker(name)
    found = definitions.get(anon_name)
    if found is not None:
        return found
    return definitions.get(struct_name)


class Registry:
    """Keeps marker definitions by target and name, with their help."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_target: Dict[TargetType, Dict[str, Definition]] = {
            TargetType.PACKAGE: {},
            TargetType.TYPE: {},
            TargetType.FIELD: {},
        }
        self._help: Dict[Definition, DefinitionHelp] = {}

    def define(self, name: str, target: TargetType, output: Any) -> Definition:
        """Make a definition for ``output`` and register it."""
        definition = make_definition(name, target, output)
        self.register(definition)
        return definition

    def register(self, definition: Definition) -> None:
        """Register a definition; raises ValueError for an unknown target."""
        with self._lock:
            table = self._by_target.get(definition.target)
            if table is None:
                raise ValueError(f"unknown target type {definition.target}")
            table[definition.name] = definition

    def add_help(self, definition: Definition, help: DefinitionHelp) -> None:
        """Associate help with a definition."""
        with self._lock:
            self._help[definition] = help

    def lookup(self, name: str, target: TargetType) -> Optional[Definition]:
        """The definition matching a raw marker and target, if any."""
        with self._lock:
            table = self._by_target.get(target)
            if table is None:
                return None
            return _try_anon_lookup(name, table)

    def help_for(self, definition: Definition) -> Optional[DefinitionHelp]:
        """The help registered for a definition, if any."""
        with self._lock:
            return self._help.get(definition)

    def all_definitions(self) -> List[Definition]:
        """Every registered definition: package, then type, then field."""
        with self._lock:
            return [
                definition
                for target in (TargetType.PACKAGE, TargetType.TYPE, TargetType.FIELD)
                for definition in self._by_target[target].values()
            ]


def register_all(registry: Registry, *definitions: Definition) -> None:
    """Register each definition in turn, stopping at the first error."""
    for definition in definitions:
        registry.register(definition)