"""
Transient per-binding directories and the handle that deletes them.

Every bind creates a fresh, uniquely named directory under the build
workspace:

    <workspace>/.git-ssh-bind/<uuid4 hex>/

Everything secret-bearing the binding writes lives in that directory, so
releasing the binding is a single recursive delete.
"""
from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Any, Callable

from git_ssh_bind.errors import BindingIOError

logger = logging.getLogger(__name__)

TRANSIENT_ROOT_NAME = ".git-ssh-bind"
DIRECTORY_MODE = 0o700


class Unbinder:
    """
    Single-use handle that deletes a transient directory.

    release() may be called any number of times; only the first call does
    any work, and a directory that is already gone is not an error.
    """

    def __init__(
        self,
        path: Path | None,
        on_release: Callable[[Path], None] | None = None,
    ) -> None:
        self._path = path
        self._on_release = on_release
        self._released = False

    @classmethod
    def noop(cls) -> "Unbinder":
        """An unbinder for bindings that create no files."""
        return cls(None)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """
        Delete the transient directory and everything beneath it.

        Raises:
            BindingIOError: If the directory exists but cannot be deleted
        """
        if self._released:
            return
        if self._path is not None:
            try:
                shutil.rmtree(self._path)
            except FileNotFoundError:
                logger.debug(f"Transient directory already gone: {self._path}")
            except OSError as e:
                logger.error(f"Could not delete transient directory {self._path}: {e}")
                raise BindingIOError(
                    f"Could not delete transient directory {self._path}: {e}",
                    path=str(self._path),
                    stage="release",
                ) from e
            else:
                logger.info(f"Released transient directory {self._path}")
            if self._on_release is not None:
                self._on_release(self._path)
        self._released = True

    def __enter__(self) -> "Unbinder":
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "bound"
        return f"Unbinder({self._path}, {state})"


class TransientWorkspace:
    """
    An exclusively owned directory for one binding's artifacts.

    Create with TransientWorkspace.create(workspace). Ownership passes to
    the Unbinder returned by unbinder(); after release nothing may refer to
    the directory.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @classmethod
    def create(cls, workspace: Path | str) -> "TransientWorkspace":
        """
        Create a new uniquely named directory under workspace.

        Raises:
            BindingIOError: If the directory cannot be created
        """
        root = Path(workspace).absolute() / TRANSIENT_ROOT_NAME
        path = root / uuid.uuid4().hex
        try:
            root.mkdir(parents=True, exist_ok=True)
            # exist_ok=False: a name clash must never share a directory
            path.mkdir(mode=DIRECTORY_MODE)
        except OSError as e:
            raise BindingIOError(
                f"Could not create transient directory under {root}: {e}",
                path=str(path),
                stage="workspace",
            ) from e

        try:
            os.chmod(path, DIRECTORY_MODE)
        except OSError as e:
            logger.warning(f"Could not restrict permissions on {path}: {e}")

        logger.debug(f"Created transient directory {path}")
        return cls(path)

    @property
    def path(self) -> Path:
        return self._path

    def unbinder(self, on_release: Callable[[Path], None] | None = None) -> Unbinder:
        return Unbinder(self._path, on_release)
