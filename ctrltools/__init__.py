"""Marker parsing, RBAC role generation, CRD schema patching and type scaffolding."""

__version__ = "0.1.0"