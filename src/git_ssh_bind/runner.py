"""
Running a build step with one or more credential bindings in effect.

This plays the part of the build engine: it checks that the bindings do
not export overlapping variables, binds each in turn, runs the command
with the merged environment, and releases every binding afterwards,
whether the command succeeded, failed or was interrupted.
"""
from __future__ import annotations

import logging
import os
import subprocess
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterator, Mapping, Sequence

from git_ssh_bind.binding import Binding
from git_ssh_bind.credentials import CredentialStore
from git_ssh_bind.events import EventEmitter
from git_ssh_bind.validation import check_collisions

logger = logging.getLogger(__name__)


@contextmanager
def bound_environment(
    bindings: Sequence[Binding],
    workspace: Path | str,
    credentials: CredentialStore,
    *,
    base_env: Mapping[str, str] | None = None,
    unix: bool | None = None,
    emitter: EventEmitter | None = None,
) -> Iterator[dict[str, str]]:
    """
    Bind every binding and yield the merged environment.

    base_env (default: the process environment) is overlaid with each
    binding's variables. If a binding fails, those already bound are
    released before the error propagates.

    Raises:
        ConfigurationError: If bindings export overlapping variables
        BindingError: If any binding fails
    """
    check_collisions(bindings)
    env = dict(os.environ if base_env is None else base_env)

    with ExitStack() as stack:
        for binding in bindings:
            bound = stack.enter_context(
                binding.bind(workspace, credentials, unix=unix, emitter=emitter)
            )
            env.update(bound.environment)
        logger.debug(f"{len(bindings)} binding(s) active")
        yield env
    logger.debug("All bindings released")


def run_with_bindings(
    command: Sequence[str],
    bindings: Sequence[Binding],
    workspace: Path | str,
    credentials: CredentialStore,
    *,
    base_env: Mapping[str, str] | None = None,
    unix: bool | None = None,
    emitter: EventEmitter | None = None,
) -> int:
    """
    Run command in workspace with the bindings' variables set.

    Returns:
        The command's exit status
    """
    assert command, "command must not be empty"
    with bound_environment(
        bindings,
        workspace,
        credentials,
        base_env=base_env,
        unix=unix,
        emitter=emitter,
    ) as env:
        logger.info(f"Running {command[0]} in {workspace}")
        result = subprocess.run(list(command), env=env, cwd=str(workspace))
    return result.returncode
