"""
Writing private keys and passphrases into a transient directory.

File names derive from the configured key-file variable so that several
keys can be bound in one workspace without colliding:

    ssh-key-<var>                   the private key blocks
    ssh-key-<var>_passphrase.txt    the passphrase (if a passphrase variable
                                    is configured)
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from git_ssh_bind.errors import BindingIOError
from git_ssh_bind.secret import Secret

logger = logging.getLogger(__name__)

KEY_FILE_PREFIX = "ssh-key-"
PASSPHRASE_SUFFIX = "_passphrase.txt"
SECRET_FILE_MODE = 0o600


def key_file_name(key_file_variable: str) -> str:
    return f"{KEY_FILE_PREFIX}{key_file_variable}"


def passphrase_file_name(key_file_variable: str) -> str:
    return f"{key_file_name(key_file_variable)}{PASSPHRASE_SUFFIX}"


def format_key_blocks(private_keys: Iterable[str]) -> str:
    """Join key blocks one per line, each terminated by a newline."""
    return "".join(f"{key}\n" for key in private_keys)


def set_permissions(path: Path, mode: int) -> None:
    """
    chmod path, tolerating filesystems without POSIX permission bits.

    The file is still usable by the owner in that case, which is all the
    binding needs, so the failure is logged rather than raised.
    """
    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.warning(f"Could not set mode {oct(mode)} on {path}: {e}")


def _write_secret_file(path: Path, content: str, mode: int, what: str) -> Path:
    # O_TRUNC: a repeated write replaces the file rather than appending
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    try:
        fd = os.open(path, flags, SECRET_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        raise BindingIOError(
            f"Could not write {what} to {path}: {e}",
            path=str(path),
            stage="materialize",
        ) from e
    set_permissions(path, mode)
    logger.debug(f"Wrote {what} to {path}")
    return path


def write_key_file(
    directory: Path,
    key_file_variable: str,
    private_keys: Iterable[str],
    mode: int = SECRET_FILE_MODE,
) -> Path:
    """
    Write all private key blocks to ssh-key-<var> in directory.

    Args:
        directory: The transient directory
        key_file_variable: Configured key-file variable name
        private_keys: Key blocks, written verbatim one per line
        mode: Permission bits for the file (owner read/write by default)

    Returns:
        Absolute path of the key file

    Raises:
        BindingIOError: If the file cannot be written
    """
    path = directory.absolute() / key_file_name(key_file_variable)
    return _write_secret_file(path, format_key_blocks(private_keys), mode, "private key")


def write_passphrase_file(
    directory: Path,
    key_file_variable: str,
    passphrase: Secret | None,
) -> Path:
    """
    Write the passphrase to ssh-key-<var>_passphrase.txt in directory.

    The file holds exactly the passphrase, with no trailing newline, so an
    askpass helper that prints it emits the passphrase and nothing else. A
    missing passphrase produces an empty file.

    Raises:
        BindingIOError: If the file cannot be written
    """
    path = directory.absolute() / passphrase_file_name(key_file_variable)
    return _write_secret_file(
        path, Secret.to_plain(passphrase), SECRET_FILE_MODE, "passphrase"
    )
