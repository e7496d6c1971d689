"""
Credential bindings: exposing a credential to a build step as variables.

A Binding is configured with the names of the variables it exports and the
identifier of the credential to export. bind() fetches the credential,
writes whatever files the credential needs into a fresh transient
directory, and returns a BoundEnvironment: the variables plus a handle
that deletes those files.

Usage:
    binding = GitSSHPrivateKeyBinding("SSH_KEY", "deploy-key",
                                      passphrase_variable="SSH_PASS")
    with binding.bind(workspace, store) as bound:
        subprocess.run(["git", "fetch"], env={**os.environ, **bound.environment})

bind() is all-or-nothing: on any failure the transient directory is
deleted before the error propagates.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from types import MappingProxyType
from typing import Any, Generic, Mapping, TypeVar

from git_ssh_bind.credentials import (
    CredentialStore,
    SSHUserPrivateKey,
    UsernamePassword,
    fetch_credential,
)
from git_ssh_bind.errors import BindingError, BindingIOError
from git_ssh_bind.events import EventEmitter, EventType
from git_ssh_bind.locator import SSHExecutableLocator
from git_ssh_bind.materialize import (
    SECRET_FILE_MODE,
    write_key_file,
    write_passphrase_file,
)
from git_ssh_bind.platform import is_unix
from git_ssh_bind.scripts import ScriptFlavor, flavor_for, get_synthesizer
from git_ssh_bind.validation import (
    GIT_SSH,
    GIT_SSH_VARIANT,
    RESERVED_VARIABLES,
    SSH_ASKPASS,
    validate_distinct_variables,
    validate_not_reserved,
    validate_variable_name,
)
from git_ssh_bind.workspace import TransientWorkspace, Unbinder

logger = logging.getLogger(__name__)

C = TypeVar("C", SSHUserPrivateKey, UsernamePassword)

REDACTED = "****"


class BoundEnvironment:
    """
    The variables a binding exports, paired with its unbind handle.

    The environment is read-only. Its order follows insertion, which only
    matters for readable diagnostics.
    """

    def __init__(
        self,
        values: Mapping[str, str],
        unbinder: Unbinder,
        secret_variables: frozenset[str] = frozenset(),
    ) -> None:
        self._environment = MappingProxyType(dict(values))
        self._unbinder = unbinder
        self._secret_variables = secret_variables

    @property
    def environment(self) -> Mapping[str, str]:
        return self._environment

    @property
    def unbinder(self) -> Unbinder:
        return self._unbinder

    def redacted(self) -> dict[str, str]:
        """Copy of the variables with secret values masked, for logging."""
        return {
            name: REDACTED if name in self._secret_variables and value else value
            for name, value in self._environment.items()
        }

    def release(self) -> None:
        """Delete the binding's transient files. Safe to call repeatedly."""
        self._unbinder.release()

    def __enter__(self) -> "BoundEnvironment":
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"BoundEnvironment({self.redacted()!r})"


class Binding(ABC, Generic[C]):
    """
    A way of exposing one kind of credential as environment variables.

    Subclasses name the credential kind they accept, the variables they
    export, and how binding works.
    """

    def __init__(self, credentials_id: str) -> None:
        self.credentials_id = credentials_id

    @classmethod
    @abstractmethod
    def credential_type(cls) -> type[C]:
        """The credential class this binding accepts."""

    @abstractmethod
    def variables(self) -> frozenset[str]:
        """
        Names of the user-configured variables this binding exports.

        Computed from configuration only; performs no I/O.
        """

    def reserved_variables(self) -> frozenset[str]:
        """Variables the binding always sets, regardless of configuration."""
        return frozenset()

    def get_credentials(self, store: CredentialStore) -> C:
        return fetch_credential(store, self.credentials_id, self.credential_type())

    @abstractmethod
    def bind(
        self,
        workspace: Path | str,
        credentials: CredentialStore,
        *,
        unix: bool | None = None,
        emitter: EventEmitter | None = None,
    ) -> BoundEnvironment:
        """
        Fetch the credential and materialise it for one build step.

        Args:
            workspace: Build workspace; transient files go beneath it
            credentials: Store to fetch credentials_id from
            unix: Whether the process that will use the variables runs on a
                POSIX system (defaults to the local platform)
            emitter: Receives structured events for each stage

        Returns:
            The exported variables and their unbind handle

        Raises:
            BindingError: Any failure; nothing is left on disk
        """


class GitSSHPrivateKeyBinding(Binding[SSHUserPrivateKey]):
    """
    Bind an SSH private key so git can use it over SSH.

    Exports:
        <key_file_variable>    path of the private key file
        GIT_SSH                wrapper script that runs ssh with the key
        GIT_SSH_VARIANT        "ssh"
        <passphrase_variable>  passphrase, or "" (only if configured)
        SSH_ASKPASS            askpass helper (only if configured and the
                               key has a passphrase)
        <username_variable>    the credential's user name (only if configured)

    Args:
        key_file_variable: Variable receiving the key file path (required)
        credentials_id: Identifier of an SSHUserPrivateKey credential
        username_variable: Optional variable receiving the user name
        passphrase_variable: Optional variable receiving the passphrase
        git_executable: git in use on Windows, used to find ssh.exe
        key_file_mode: Permission bits for the key file. Owner read/write
            by default; a deployment where git runs as another user can
            loosen this.
        locator: Overrides the ssh.exe locator used for Windows scripts
    """

    def __init__(
        self,
        key_file_variable: str,
        credentials_id: str,
        username_variable: str | None = None,
        passphrase_variable: str | None = None,
        git_executable: str | None = None,
        key_file_mode: int = SECRET_FILE_MODE,
        locator: SSHExecutableLocator | None = None,
    ) -> None:
        super().__init__(credentials_id)
        self.key_file_variable = validate_variable_name(
            key_file_variable, "keyFileVariable"
        )
        self.username_variable = username_variable
        self.passphrase_variable = passphrase_variable
        self.git_executable = git_executable
        self.key_file_mode = key_file_mode
        self.locator = locator
        self._validate()

    def _validate(self) -> None:
        configured = [("keyFileVariable", self.key_file_variable)]
        if self.username_variable is not None:
            configured.append(("usernameVariable", self.username_variable))
        if self.passphrase_variable is not None:
            configured.append(("passphraseVariable", self.passphrase_variable))
        for field_name, name in configured:
            validate_variable_name(name, field_name)
            validate_not_reserved(name, field_name)
        validate_distinct_variables(name for _, name in configured)

    @classmethod
    def credential_type(cls) -> type[SSHUserPrivateKey]:
        return SSHUserPrivateKey

    def variables(self) -> frozenset[str]:
        names = {self.key_file_variable}
        if self.username_variable is not None:
            names.add(self.username_variable)
        if self.passphrase_variable is not None:
            names.add(self.passphrase_variable)
        return frozenset(names)

    def reserved_variables(self) -> frozenset[str]:
        return RESERVED_VARIABLES

    def _resolve_locator(self) -> SSHExecutableLocator:
        return self.locator or SSHExecutableLocator(self.git_executable)

    def bind(
        self,
        workspace: Path | str,
        credentials: CredentialStore,
        *,
        unix: bool | None = None,
        emitter: EventEmitter | None = None,
    ) -> BoundEnvironment:
        emitter = emitter or EventEmitter()
        flavor = flavor_for(is_unix() if unix is None else unix)
        stage = "fetch"
        keydir: TransientWorkspace | None = None

        with emitter.timed_event(
            EventType.BIND,
            credential_id=self.credentials_id,
            binding="gitSshUserPrivateKey",
            flavor=flavor.value,
        ) as event_data:
            try:
                ssh_key = self.get_credentials(credentials)

                stage = "workspace"
                keydir = TransientWorkspace.create(workspace)

                stage = "materialize"
                key_file = write_key_file(
                    keydir.path,
                    self.key_file_variable,
                    ssh_key.private_keys,
                    self.key_file_mode,
                )
                emitter.emit(EventType.MATERIALIZE, path=str(key_file), artifact="key")
                passphrase_file = None
                if self.passphrase_variable is not None:
                    passphrase_file = write_passphrase_file(
                        keydir.path, self.key_file_variable, ssh_key.passphrase
                    )
                    emitter.emit(
                        EventType.MATERIALIZE,
                        path=str(passphrase_file),
                        artifact="passphrase",
                    )

                ssh_executable = None
                if flavor is ScriptFlavor.WINDOWS:
                    stage = "resolve"
                    ssh_executable = self._resolve_locator().locate()
                    emitter.emit(EventType.RESOLVE, path=str(ssh_executable))

                stage = "synthesize"
                synthesizer = get_synthesizer(flavor, ssh_executable)
                ssh_wrapper = synthesizer.write_ssh_wrapper(key_file, ssh_key.username)
                emitter.emit(EventType.SYNTHESIZE, path=str(ssh_wrapper), artifact="ssh")
                askpass = None
                if passphrase_file is not None:
                    askpass = synthesizer.write_askpass(passphrase_file, keydir.path)
                    emitter.emit(
                        EventType.SYNTHESIZE, path=str(askpass), artifact="askpass"
                    )
            except BindingError as e:
                e.context.stage = e.context.stage or stage
                e.context.credential_id = e.context.credential_id or self.credentials_id
                self._abandon(keydir, emitter)
                emitter.emit_error(e)
                logger.error(f"Binding '{self.credentials_id}' failed during {stage}: {e}")
                raise
            except BaseException:
                self._abandon(keydir, emitter)
                raise

            values: dict[str, str] = {
                self.key_file_variable: str(key_file),
                GIT_SSH: str(ssh_wrapper),
                GIT_SSH_VARIANT: "ssh",
            }
            secret_variables: set[str] = set()
            if self.passphrase_variable is not None:
                secret_variables.add(self.passphrase_variable)
                if ssh_key.passphrase is not None:
                    values[self.passphrase_variable] = ssh_key.passphrase.reveal()
                    values[SSH_ASKPASS] = str(askpass)
                else:
                    values[self.passphrase_variable] = ""
            if self.username_variable is not None:
                values[self.username_variable] = ssh_key.username

            bound = BoundEnvironment(
                values,
                keydir.unbinder(on_release=lambda path: emitter.emit(
                    EventType.RELEASE, path=str(path)
                )),
                frozenset(secret_variables),
            )
            event_data["variables"] = sorted(values)
            logger.info(
                f"Bound credentials '{self.credentials_id}' in {keydir.path}: "
                f"{bound.redacted()}"
            )
            return bound

    @staticmethod
    def _abandon(keydir: TransientWorkspace | None, emitter: EventEmitter) -> None:
        """
        Delete a half-built transient directory.

        A failure here is logged and emitted but not raised, so the error
        that aborted the bind is the one that propagates.
        """
        if keydir is None:
            return
        try:
            keydir.unbinder(on_release=lambda path: emitter.emit(
                EventType.RELEASE, path=str(path), abandoned=True
            )).release()
        except BindingIOError as e:
            logger.error(f"Could not clean up after failed bind: {e}")
            emitter.emit_error(e)

    def __repr__(self) -> str:
        return (
            f"GitSSHPrivateKeyBinding(key_file_variable={self.key_file_variable!r}, "
            f"credentials_id={self.credentials_id!r}, "
            f"username_variable={self.username_variable!r}, "
            f"passphrase_variable={self.passphrase_variable!r})"
        )


class UsernamePasswordBinding(Binding[UsernamePassword]):
    """
    Bind a username/password pair as two variables.

    Writes no files, so the returned handle has nothing to delete.
    """

    def __init__(
        self,
        username_variable: str,
        password_variable: str,
        credentials_id: str,
    ) -> None:
        super().__init__(credentials_id)
        self.username_variable = validate_variable_name(
            username_variable, "usernameVariable"
        )
        self.password_variable = validate_variable_name(
            password_variable, "passwordVariable"
        )
        validate_distinct_variables([username_variable, password_variable])

    @classmethod
    def credential_type(cls) -> type[UsernamePassword]:
        return UsernamePassword

    def variables(self) -> frozenset[str]:
        return frozenset({self.username_variable, self.password_variable})

    def bind(
        self,
        workspace: Path | str,
        credentials: CredentialStore,
        *,
        unix: bool | None = None,
        emitter: EventEmitter | None = None,
    ) -> BoundEnvironment:
        emitter = emitter or EventEmitter()
        with emitter.timed_event(
            EventType.BIND,
            credential_id=self.credentials_id,
            binding="usernamePassword",
        ) as event_data:
            try:
                credential = self.get_credentials(credentials)
            except BindingError as e:
                emitter.emit_error(e)
                raise
            values = {
                self.username_variable: credential.username,
                self.password_variable: credential.password.reveal(),
            }
            event_data["variables"] = sorted(values)
            return BoundEnvironment(
                values, Unbinder.noop(), frozenset({self.password_variable})
            )
