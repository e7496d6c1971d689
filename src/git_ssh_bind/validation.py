"""
Validation of exported environment variable names.

All checks here run on configuration alone, before any credential is
fetched or any file is written, and raise ConfigurationError.
"""
from __future__ import annotations

import re
from collections import Counter
from typing import TYPE_CHECKING, Final, Iterable

from git_ssh_bind.errors import ConfigurationError

if TYPE_CHECKING:
    from git_ssh_bind.binding import Binding

# Variables the git/ssh environment contract always sets
GIT_SSH: Final[str] = "GIT_SSH"
GIT_SSH_VARIANT: Final[str] = "GIT_SSH_VARIANT"
SSH_ASKPASS: Final[str] = "SSH_ASKPASS"
RESERVED_VARIABLES: Final[frozenset[str]] = frozenset(
    {GIT_SSH, GIT_SSH_VARIANT, SSH_ASKPASS}
)

_VARIABLE_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def validate_variable_name(name: object, field_name: str) -> str:
    """
    Validate one environment variable name.

    Args:
        name: The configured name
        field_name: Which setting it came from, for the error message

    Returns:
        The name, unchanged

    Raises:
        ConfigurationError: If the name is empty or not a valid identifier
    """
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{field_name} must be a non-empty string, got {name!r}")
    if not _VARIABLE_PATTERN.fullmatch(name):
        raise ConfigurationError(
            f"{field_name} {name!r} is not a valid environment variable name",
            variable=name,
        )
    return name


def validate_not_reserved(name: str, field_name: str) -> None:
    """Reject names that would overwrite GIT_SSH, GIT_SSH_VARIANT or SSH_ASKPASS."""
    if name in RESERVED_VARIABLES:
        raise ConfigurationError(
            f"{field_name} {name!r} clashes with a variable set by the binding itself",
            variable=name,
        )


def validate_distinct_variables(names: Iterable[str]) -> None:
    """
    Ensure no variable name is configured twice.

    Raises:
        ConfigurationError: Naming every duplicated variable
    """
    counts = Counter(names)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise ConfigurationError(
            f"Variable names must be distinct; duplicated: {', '.join(duplicates)}",
            variable=duplicates[0],
        )


def check_collisions(bindings: Iterable["Binding"]) -> None:
    """
    Ensure several bindings do not export the same variable.

    Called before any of the bindings runs. Variables a binding always sets
    (GIT_SSH for git/ssh bindings) count too, so two git/ssh bindings
    cannot be active together.

    Raises:
        ConfigurationError: Naming every variable exported more than once
    """
    names: list[str] = []
    for binding in bindings:
        names.extend(binding.variables() | binding.reserved_variables())
    counts = Counter(names)
    collisions = sorted(name for name, count in counts.items() if count > 1)
    if collisions:
        raise ConfigurationError(
            f"Multiple bindings export the same variables: {', '.join(collisions)}",
            variable=collisions[0],
        )
