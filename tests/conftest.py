"""
Pytest fixtures for git-ssh-bind tests.

Provides:
- Generated SSH private-key credentials (plain and passphrase-protected)
- An in-memory credential store holding them
- An event collector wired to an emitter
- A fake ssh executable on PATH for running POSIX wrapper scripts
"""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from git_ssh_bind.credentials import (
    InMemoryCredentialStore,
    SSHUserPrivateKey,
    UsernamePassword,
)
from git_ssh_bind.events import EventCollector, EventEmitter
from git_ssh_bind.secret import Secret
from git_ssh_bind.testing import install_fake_ssh, make_ssh_credential


@pytest.fixture(scope="session")
def ssh_credential() -> SSHUserPrivateKey:
    """A credential with one unencrypted ed25519 key and no passphrase."""
    return make_ssh_credential("deploy-key", username="git")


@pytest.fixture(scope="session")
def protected_credential() -> SSHUserPrivateKey:
    """A credential whose key is encrypted with the passphrase hunter2."""
    return make_ssh_credential("protected-key", username="builder", passphrase="hunter2")


@pytest.fixture(scope="session")
def multi_key_credential() -> SSHUserPrivateKey:
    """A credential bundling two key blocks."""
    return make_ssh_credential("multi-key", username="git", key_count=2)


@pytest.fixture
def password_credential() -> UsernamePassword:
    return UsernamePassword(
        id="registry",
        username="robot",
        password=Secret("s3cret"),
    )


@pytest.fixture
def store(
    ssh_credential: SSHUserPrivateKey,
    protected_credential: SSHUserPrivateKey,
    multi_key_credential: SSHUserPrivateKey,
    password_credential: UsernamePassword,
) -> InMemoryCredentialStore:
    store = InMemoryCredentialStore()
    for credential in (
        ssh_credential,
        protected_credential,
        multi_key_credential,
        password_credential,
    ):
        store.add(credential)
    return store


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def event_collector() -> EventCollector:
    return EventCollector()


@pytest.fixture
def emitter(event_collector: EventCollector) -> EventEmitter:
    return EventEmitter(collector=event_collector)


@pytest.fixture
def fake_ssh_env(tmp_path: Path) -> dict[str, str]:
    """
    Environment for running wrapper scripts against a fake ssh.

    DISPLAY is removed so the wrapper's placeholder display is visible.
    """
    fake_bin = tmp_path / "fake-bin"
    install_fake_ssh(fake_bin)
    env = {k: v for k, v in os.environ.items() if k != "DISPLAY"}
    env["PATH"] = f"{fake_bin}{os.pathsep}{env.get('PATH', '')}"
    return env
