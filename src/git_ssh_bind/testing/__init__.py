"""
Testing utilities for git-ssh-bind.

Provides real private keys (generated with asyncssh) for credential
fixtures, and a fake ssh executable that records how it was invoked, so
wrapper scripts can be exercised without a server.
"""
from __future__ import annotations

import os
import stat
from pathlib import Path

import asyncssh

from git_ssh_bind.credentials import SSHUserPrivateKey
from git_ssh_bind.secret import Secret

# Prints each argument on its own line, then the DISPLAY it saw
FAKE_SSH_SCRIPT = """#!/bin/sh
for arg in "$@"; do
  printf '%s\\n' "$arg"
done
printf '%s\\n' "--display=${DISPLAY}"
"""


def generate_private_key_block(
    alg: str = "ssh-ed25519",
    passphrase: str | None = None,
) -> str:
    """
    Return a freshly generated private key in OpenSSH format.

    Args:
        alg: asyncssh key algorithm name
        passphrase: Encrypt the exported key with this passphrase
    """
    key = asyncssh.generate_private_key(alg, comment="git-ssh-bind test")
    data = key.export_private_key("openssh", passphrase=passphrase)
    return data.decode("ascii").rstrip("\n")


def make_ssh_credential(
    credential_id: str = "test-key",
    username: str = "git",
    passphrase: str | None = None,
    key_count: int = 1,
) -> SSHUserPrivateKey:
    """Build an SSHUserPrivateKey holding key_count generated keys."""
    blocks = tuple(
        generate_private_key_block(passphrase=passphrase) for _ in range(key_count)
    )
    return SSHUserPrivateKey(
        id=credential_id,
        username=username,
        private_keys=blocks,
        passphrase=Secret(passphrase) if passphrase is not None else None,
    )


def install_fake_ssh(directory: Path) -> Path:
    """
    Write an executable named ssh into directory and return its path.

    Put directory first on PATH to have wrapper scripts call it.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "ssh"
    path.write_text(FAKE_SSH_SCRIPT, encoding="utf-8")
    os.chmod(path, path.stat().st_mode | stat.S_IXUSR)
    return path


__all__ = [
    "generate_private_key_block",
    "make_ssh_credential",
    "install_fake_ssh",
    "FAKE_SSH_SCRIPT",
]
