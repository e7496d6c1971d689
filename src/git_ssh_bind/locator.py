"""
Locating ssh.exe for Windows wrapper scripts.

Windows has no canonical ssh on the search path, so the batch wrapper must
name an ssh executable explicitly. Git for Windows ships one; this module
finds it. Search order, first existing candidate wins:

1. GIT_SSH from the environment, if it names an existing file
2. %ProgramFiles%\\Git\\bin\\ssh.exe and %ProgramFiles%\\Git\\usr\\bin\\ssh.exe
3. The same two under %ProgramFiles(x86)%
4. ssh.exe beside the configured git executable
5. git located on PATH (as .exe or .cmd), then ssh.exe beside it after
   rewriting common Git for Windows layouts (bin -> usr/bin, cmd -> bin,
   cmd -> usr/bin, mingw64 removed, mingw64/bin -> usr/bin)

The locator only probes the filesystem, so one instance can be shared by
concurrent bindings.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path, PureWindowsPath
from typing import Iterator, Mapping

from git_ssh_bind.errors import ResolutionError
from git_ssh_bind.platform import get_environ, get_search_path

logger = logging.getLogger(__name__)

SSH_EXE = "ssh.exe"
DEFAULT_GIT_EXECUTABLE = "git"

OVERRIDE_VARIABLE = "GIT_SSH"
PROGRAM_FILES_VARIABLES = ("ProgramFiles", "ProgramFiles(x86)")
PROGRAM_FILES_SUBPATHS = (
    ("Git", "bin", SSH_EXE),
    ("Git", "usr", "bin", SSH_EXE),
)

# Substitutions applied to the path of git found on PATH. Each pair is
# applied with both separators.
LAYOUT_REWRITES = (
    ("/bin/", "/usr/bin/"),
    ("/cmd/", "/bin/"),
    ("/cmd/", "/usr/bin/"),
    ("/mingw64/", "/"),
    ("/mingw64/bin/", "/usr/bin/"),
)


def _rewrite(path: str, old: str, new: str) -> str:
    """Replace old with new under either separator, ignoring case."""
    for sep in ("/", "\\"):
        pattern = re.compile(re.escape(old.replace("/", sep)), re.IGNORECASE)
        replacement = new.replace("/", sep)
        path = pattern.sub(lambda _: replacement, path)
    return path


def _parent(path: str) -> str | None:
    """Parent directory of path, understanding both separators."""
    if "\\" in path:
        parent = str(PureWindowsPath(path).parent)
    else:
        parent = str(Path(path).parent)
    if parent in ("", ".") or parent == path:
        return None
    return parent


def executable_names(git_executable: str) -> tuple[str, str]:
    """
    Return the (.exe, .cmd) forms of a git executable name.

    The suffix check is case-insensitive ("GIT.EXE" gives "GIT.exe");
    the stem keeps its case.
    """
    lowered = git_executable.lower()
    if lowered.endswith(".exe"):
        stem = git_executable[: -len(".exe")]
    elif lowered.endswith(".cmd"):
        stem = git_executable[: -len(".cmd")]
    else:
        stem = git_executable
    return f"{stem}.exe", f"{stem}.cmd"


class SSHExecutableLocator:
    """
    Find ssh.exe for a Windows wrapper script.

    Args:
        git_executable: Name or path of the git executable in use
            (defaults to "git")
        environ: Environment to read ProgramFiles, GIT_SSH and PATH from
            (defaults to the process environment)
    """

    def __init__(
        self,
        git_executable: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.git_executable = git_executable or DEFAULT_GIT_EXECUTABLE
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return get_environ(self._environ)

    def _from_env(self, variable: str, *parts: str) -> str | None:
        value = self.environ.get(variable)
        if not value:
            return None
        return str(Path(value, *parts))

    def _sibling_ssh(self, executable: str) -> str | None:
        parent = _parent(executable)
        if parent is None:
            return None
        return str(Path(parent) / SSH_EXE)

    def find_git_on_path(self) -> str | None:
        """
        Search PATH for the git executable as .exe, then .cmd.

        Falls back to the configured name itself if it exists as given.

        Returns:
            Absolute path of git, or None
        """
        exe, cmd = executable_names(self.git_executable)
        for directory in get_search_path(self.environ):
            for name in (exe, cmd):
                candidate = Path(directory) / name
                if candidate.exists():
                    return str(candidate.absolute())

        given = Path(self.git_executable)
        if given.exists():
            return str(given.absolute())
        return None

    def candidates(self) -> Iterator[str]:
        """
        Yield candidate ssh paths in search order.

        Lazy: the PATH search for git only happens if the earlier
        candidates are exhausted.
        """
        override = self.environ.get(OVERRIDE_VARIABLE)
        if override:
            yield override

        for variable in PROGRAM_FILES_VARIABLES:
            for parts in PROGRAM_FILES_SUBPATHS:
                candidate = self._from_env(variable, *parts)
                if candidate:
                    yield candidate

        sibling = self._sibling_ssh(self.git_executable)
        if sibling:
            yield sibling

        git_path = self.find_git_on_path()
        if git_path is None:
            logger.debug(f"{self.git_executable} not found on PATH")
            return
        for old, new in LAYOUT_REWRITES:
            sibling = self._sibling_ssh(_rewrite(git_path, old, new))
            if sibling:
                yield sibling

    def locate(self) -> Path:
        """
        Return the first existing ssh executable.

        Raises:
            ResolutionError: If no candidate exists
        """
        probed: list[str] = []
        for candidate in self.candidates():
            probed.append(candidate)
            path = Path(candidate)
            if path.is_file():
                logger.debug(f"Using ssh executable {path}")
                return path.absolute()
            logger.debug(f"No ssh executable at {candidate}")

        raise ResolutionError(
            "ssh executable not found. Install the official Git for Windows "
            "client (https://git-scm.com/download/win) or set GIT_SSH to the "
            "path of ssh.exe",
            candidates=probed,
        )
