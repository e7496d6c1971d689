"""
Declarative binding definitions.

Maps the user-facing field names of a binding definition to binding
constructors:

    {"$class": "gitSshUserPrivateKey", "credentialsId": "deploy-key",
     "keyFileVariable": "SSH_KEY", "usernameVariable": "SSH_USER",
     "passphraseVariable": "SSH_PASS", "gitTool": "C:\\\\Git\\\\cmd\\\\git.exe"}

    {"$class": "usernamePassword", "credentialsId": "registry",
     "usernameVariable": "REG_USER", "passwordVariable": "REG_PASS"}

"type" is accepted in place of "$class". A bindings file is a JSON list
of such objects, or an object with a "bindings" list.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

from git_ssh_bind.binding import (
    Binding,
    GitSSHPrivateKeyBinding,
    UsernamePasswordBinding,
)
from git_ssh_bind.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _required(data: dict[str, Any], key: str, symbol: str) -> str:
    value = data.get(key)
    if value is None:
        raise ConfigurationError(f"{symbol} binding requires '{key}'")
    if not isinstance(value, str):
        raise ConfigurationError(f"{symbol} binding field '{key}' must be a string")
    return value


def _optional(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"Binding field '{key}' must be a string")
    return value


def _git_ssh_binding(data: dict[str, Any]) -> Binding:
    symbol = "gitSshUserPrivateKey"
    return GitSSHPrivateKeyBinding(
        key_file_variable=_required(data, "keyFileVariable", symbol),
        credentials_id=_required(data, "credentialsId", symbol),
        username_variable=_optional(data, "usernameVariable"),
        passphrase_variable=_optional(data, "passphraseVariable"),
        git_executable=_optional(data, "gitTool"),
    )


def _username_password_binding(data: dict[str, Any]) -> Binding:
    symbol = "usernamePassword"
    return UsernamePasswordBinding(
        username_variable=_required(data, "usernameVariable", symbol),
        password_variable=_required(data, "passwordVariable", symbol),
        credentials_id=_required(data, "credentialsId", symbol),
    )


BINDING_SYMBOLS: dict[str, Callable[[dict[str, Any]], Binding]] = {
    "gitSshUserPrivateKey": _git_ssh_binding,
    "usernamePassword": _username_password_binding,
}


def binding_from_dict(data: dict[str, Any]) -> Binding:
    """
    Build a binding from its declarative definition.

    Raises:
        ConfigurationError: Unknown binding symbol, missing or mistyped
            fields, or invalid variable names
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Binding definition must be an object, got {data!r}")
    symbol = data.get("$class", data.get("type"))
    factory = BINDING_SYMBOLS.get(symbol) if isinstance(symbol, str) else None
    if factory is None:
        known = ", ".join(sorted(BINDING_SYMBOLS))
        raise ConfigurationError(f"Unknown binding type {symbol!r} (known: {known})")
    return factory(data)


def load_bindings(path: Path | str) -> list[Binding]:
    """
    Load binding definitions from a JSON file.

    Raises:
        ConfigurationError: If the file cannot be read or is malformed
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not load bindings from {path}: {e}") from e

    if isinstance(document, dict):
        document = document.get("bindings")
    if not isinstance(document, list):
        raise ConfigurationError(f"{path} must contain a list of bindings")

    bindings = [binding_from_dict(item) for item in document]
    logger.debug(f"Loaded {len(bindings)} binding(s) from {path}")
    return bindings
