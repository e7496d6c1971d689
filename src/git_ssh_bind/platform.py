"""
Platform detection and search-path helpers.

The script flavor (POSIX shell or Windows batch) is chosen from a single
flag, is_unix(), resolved once per binding. Callers preparing an
environment for a different machine pass the flag explicitly instead.
"""
from __future__ import annotations

import os
import sys
from typing import Mapping


def is_windows() -> bool:
    """Check if running on Windows."""
    return sys.platform == "win32"


def is_unix() -> bool:
    """Check if running on a POSIX platform (anything but Windows)."""
    return not is_windows()


def get_environ(environ: Mapping[str, str] | None = None) -> Mapping[str, str]:
    """Return the supplied environment, or the process environment."""
    if environ is None:
        return os.environ
    return environ


def get_search_path(environ: Mapping[str, str] | None = None) -> list[str]:
    """
    Split PATH from the given environment into directories.

    Empty entries are dropped. A missing PATH yields an empty list.
    """
    value = get_environ(environ).get("PATH")
    if not value:
        return []
    return [entry for entry in value.split(os.pathsep) if entry]
