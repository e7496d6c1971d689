"""
Wrapper and askpass script generation.

git runs $GIT_SSH in place of ssh, passing the host and remote command as
arguments. The wrapper written here adds the bound key, the user name and
the host-key policy, then forwards everything else:

    POSIX    ssh-key-<var>-copy       #!/bin/sh, exec ssh ... "$@"
    Windows  ssh-key-<var>-copy.bat   "<ssh.exe>" ... %*

When the key has a passphrase, ssh obtains it by running $SSH_ASKPASS and
reading its standard output. The askpass helper prints the passphrase file:

    POSIX    pass-copy                cat '<file>'
    Windows  pass-copy.bat            type "<file>"

Every value embedded in a script is quoted for that script's interpreter,
so paths and user names containing quotes or shell metacharacters reach
ssh as one literal argument.
"""
from __future__ import annotations

import logging
import os
import shlex
from enum import Enum
from pathlib import Path

from git_ssh_bind.errors import BindingIOError, ScriptEncodingError

logger = logging.getLogger(__name__)

SCRIPT_MODE = 0o700

# ssh ignores SSH_ASKPASS when DISPLAY is unset, so the wrapper sets a
# placeholder display in that case.
PLACEHOLDER_DISPLAY = ":123.456"

HOST_KEY_POLICY = ("-o", "StrictHostKeyChecking=no")

# cmd.exe metacharacters that must be caret-escaped in a batch file
_BATCH_SPECIAL = frozenset('^&|<>()"')


class ScriptFlavor(str, Enum):
    """Which interpreter the generated scripts target."""
    POSIX = "posix"
    WINDOWS = "windows"


def flavor_for(unix: bool) -> ScriptFlavor:
    return ScriptFlavor.POSIX if unix else ScriptFlavor.WINDOWS


# ---------------------------------------------------------------------------
# Quoting
# ---------------------------------------------------------------------------

def _check_value(value: str, field_name: str, forbidden: str) -> None:
    for char in forbidden:
        if char in value:
            raise ScriptEncodingError(
                f"{field_name} contains {char!r}, which cannot be passed "
                f"through a wrapper script",
                field_name=field_name,
            )


def posix_quote(value: str, field_name: str = "value") -> str:
    """
    Quote value as a single POSIX shell word.

    Embedded single quotes become '\\'' so the value cannot end the quoting.
    """
    _check_value(value, field_name, "\x00")
    return shlex.quote(value)


def windows_quote_arg(value: str) -> str:
    """
    Quote value as one argument for the Windows C runtime parser.

    Always wraps in double quotes. Backslashes are literal except before a
    double quote, where they must be doubled; embedded quotes become \\".
    """
    result = ['"']
    backslashes = 0
    for char in value:
        if char == "\\":
            backslashes += 1
        elif char == '"':
            result.append("\\" * (backslashes * 2 + 1))
            result.append('"')
            backslashes = 0
        else:
            result.append("\\" * backslashes)
            result.append(char)
            backslashes = 0
    result.append("\\" * (backslashes * 2))
    result.append('"')
    return "".join(result)


def batch_escape(text: str) -> str:
    """
    Escape text so cmd.exe passes it through to a program unchanged.

    % is doubled (batch variable expansion) and every cmd metacharacter,
    including the double quote, gets a caret so cmd never changes quoting
    state or treats & | < > as operators.
    """
    out = []
    for char in text:
        if char == "%":
            out.append("%%")
        elif char in _BATCH_SPECIAL:
            out.append("^" + char)
        else:
            out.append(char)
    return "".join(out)


def windows_quote(value: str, field_name: str = "value") -> str:
    """Quote value as one ssh.exe argument inside a batch file."""
    _check_value(value, field_name, "\x00\r\n")
    return batch_escape(windows_quote_arg(value))


def windows_quote_path(path: str, field_name: str = "path") -> str:
    """
    Quote a file system path for a batch file command position.

    Windows paths cannot contain double quotes, so plain quoting suffices;
    only % needs doubling.
    """
    _check_value(path, field_name, '\x00\r\n"')
    return '"' + path.replace("%", "%%") + '"'


# ---------------------------------------------------------------------------
# Synthesizers
# ---------------------------------------------------------------------------

def _write_script(path: Path, lines: list[str], newline: str, what: str) -> Path:
    try:
        with open(path, "w", encoding="utf-8", newline=newline) as f:
            for line in lines:
                f.write(line + "\n")
        os.chmod(path, SCRIPT_MODE)
    except OSError as e:
        raise BindingIOError(
            f"Could not write {what} to {path}: {e}",
            path=str(path),
            stage="synthesize",
        ) from e
    logger.debug(f"Wrote {what} to {path}")
    return path


class PosixScriptSynthesizer:
    """
    Generates /bin/sh scripts.

    ssh is invoked by name; on POSIX systems it is expected on PATH.
    """

    flavor = ScriptFlavor.POSIX
    wrapper_suffix = "-copy"
    askpass_name = "pass-copy"

    def __init__(self, ssh_command: str = "ssh") -> None:
        self.ssh_command = ssh_command

    def ssh_wrapper_lines(self, key_file: Path, username: str) -> list[str]:
        key = posix_quote(str(key_file), "key file path")
        user = posix_quote(username, "username")
        return [
            "#!/bin/sh",
            'if [ -z "${DISPLAY}" ]; then',
            f"  DISPLAY={PLACEHOLDER_DISPLAY}",
            "  export DISPLAY",
            "fi",
            f"exec {shlex.quote(self.ssh_command)} -i {key} -l {user} "
            f'{" ".join(HOST_KEY_POLICY)} "$@"',
        ]

    def askpass_lines(self, passphrase_file: Path) -> list[str]:
        return [
            "#!/bin/sh",
            f"cat {posix_quote(str(passphrase_file), 'passphrase file path')}",
        ]

    def write_ssh_wrapper(self, key_file: Path, username: str) -> Path:
        """Write <key_file>-copy beside the key file and return its path."""
        lines = self.ssh_wrapper_lines(key_file, username)
        path = key_file.with_name(key_file.name + self.wrapper_suffix)
        return _write_script(path, lines, "\n", "ssh wrapper")

    def write_askpass(self, passphrase_file: Path, directory: Path) -> Path:
        """Write the askpass helper into directory and return its path."""
        lines = self.askpass_lines(passphrase_file)
        return _write_script(directory / self.askpass_name, lines, "\n", "askpass helper")


class WindowsScriptSynthesizer:
    """
    Generates batch files.

    Args:
        ssh_executable: Absolute path of ssh.exe, normally found by
            SSHExecutableLocator
    """

    flavor = ScriptFlavor.WINDOWS
    wrapper_suffix = "-copy.bat"
    askpass_name = "pass-copy.bat"

    def __init__(self, ssh_executable: Path | str) -> None:
        self.ssh_executable = str(ssh_executable)

    def ssh_wrapper_lines(self, key_file: Path, username: str) -> list[str]:
        ssh = windows_quote_path(self.ssh_executable, "ssh executable path")
        key = windows_quote(str(key_file), "key file path")
        user = windows_quote(username, "username")
        return [
            "@echo off",
            f'{ssh} -i {key} -l {user} {" ".join(HOST_KEY_POLICY)} %*',
        ]

    def askpass_lines(self, passphrase_file: Path) -> list[str]:
        # @echo off keeps the command itself out of the captured passphrase
        return [
            "@echo off",
            f"type {windows_quote_path(str(passphrase_file), 'passphrase file path')}",
        ]

    def write_ssh_wrapper(self, key_file: Path, username: str) -> Path:
        """Write <key_file>-copy.bat beside the key file and return its path."""
        lines = self.ssh_wrapper_lines(key_file, username)
        path = key_file.with_name(key_file.name + self.wrapper_suffix)
        return _write_script(path, lines, "\r\n", "ssh wrapper")

    def write_askpass(self, passphrase_file: Path, directory: Path) -> Path:
        """Write the askpass helper into directory and return its path."""
        lines = self.askpass_lines(passphrase_file)
        return _write_script(directory / self.askpass_name, lines, "\r\n", "askpass helper")


ScriptSynthesizer = PosixScriptSynthesizer | WindowsScriptSynthesizer


def get_synthesizer(
    flavor: ScriptFlavor,
    ssh_executable: Path | str | None = None,
) -> ScriptSynthesizer:
    """
    Return the synthesizer for flavor.

    Args:
        flavor: POSIX or WINDOWS
        ssh_executable: ssh to invoke. Required for WINDOWS; for POSIX it
            defaults to "ssh" on PATH.
    """
    if flavor is ScriptFlavor.POSIX:
        return PosixScriptSynthesizer(str(ssh_executable) if ssh_executable else "ssh")
    assert ssh_executable is not None, "Windows scripts need an ssh executable path"
    return WindowsScriptSynthesizer(ssh_executable)
