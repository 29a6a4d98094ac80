"""The version of the installed package."""

from __future__ import annotations

import sys
from importlib import metadata

_DISTRIBUTION = "ctrltools"


def version() -> str:
    """The installed version, or "(unknown)" when it cannot be found."""
    try:
        found = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "(unknown)"
    return found or "(unknown)"


def print_version() -> str:
    """Write the version line to standard output and return it."""
    line = f"Version: {version()}\n"
    sys.stdout.write(line)
    sys.stdout.flush()
    return line