"""
Tests for writing key and passphrase files.
"""
from __future__ import annotations

import stat
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from git_ssh_bind.errors import BindingIOError
from git_ssh_bind.materialize import (
    format_key_blocks,
    key_file_name,
    passphrase_file_name,
    write_key_file,
    write_passphrase_file,
)
from git_ssh_bind.secret import Secret

posix_permissions = pytest.mark.skipif(
    sys.platform == "win32", reason="POSIX permission bits"
)


class TestNames:
    def test_key_file_name(self) -> None:
        """The key file is named after its variable."""
        assert key_file_name("SSH_KEY") == "ssh-key-SSH_KEY"

    def test_passphrase_file_name(self) -> None:
        """The passphrase file sits beside the key file."""
        assert passphrase_file_name("SSH_KEY") == "ssh-key-SSH_KEY_passphrase.txt"


class TestKeyFile:
    """Test write_key_file."""

    def test_blocks_newline_joined_and_terminated(self, tmp_path: Path) -> None:
        """Each block is followed by a newline."""
        path = write_key_file(tmp_path, "K", ["first", "second"])
        assert path.read_bytes() == b"first\nsecond\n"

    def test_generated_key_round_trips(self, tmp_path: Path, multi_key_credential) -> None:
        """A real OpenSSH key is written byte for byte."""
        path = write_key_file(tmp_path, "K", multi_key_credential.private_keys)
        expected = "".join(k + "\n" for k in multi_key_credential.private_keys)
        assert path.read_text(encoding="utf-8") == expected
        assert format_key_blocks(multi_key_credential.private_keys) == expected

    def test_path_is_absolute(self, tmp_path: Path) -> None:
        """The returned path is absolute."""
        path = write_key_file(tmp_path, "K", ["k"])
        assert path.is_absolute()
        assert path.name == "ssh-key-K"

    def test_rewrite_replaces_content(self, tmp_path: Path) -> None:
        """A second write truncates; it never appends."""
        write_key_file(tmp_path, "K", ["a much longer first key block"])
        path = write_key_file(tmp_path, "K", ["short"])
        assert path.read_text() == "short\n"

    @posix_permissions
    def test_owner_read_write_only(self, tmp_path: Path) -> None:
        """The key file is created 0600."""
        path = write_key_file(tmp_path, "K", ["k"])
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    @posix_permissions
    def test_custom_mode(self, tmp_path: Path) -> None:
        """An explicit mode is applied."""
        path = write_key_file(tmp_path, "K", ["k"], mode=0o644)
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_chmod_failure_tolerated(self, tmp_path: Path, caplog) -> None:
        """A failing chmod only logs a warning."""
        with patch("git_ssh_bind.materialize.os.chmod", side_effect=OSError("no bits")):
            path = write_key_file(tmp_path, "K", ["k"])
        assert path.read_text() == "k\n"
        assert "Could not set mode" in caplog.text

    def test_write_failure(self, tmp_path: Path) -> None:
        """A failed write raises BindingIOError at materialize."""
        with pytest.raises(BindingIOError) as exc_info:
            write_key_file(tmp_path / "missing", "K", ["k"])
        assert exc_info.value.stage == "materialize"
        assert exc_info.value.context.path.endswith("ssh-key-K")


class TestPassphraseFile:
    """Test write_passphrase_file."""

    def test_plaintext_without_newline(self, tmp_path: Path) -> None:
        """The file holds exactly the passphrase."""
        path = write_passphrase_file(tmp_path, "K", Secret("hunter2"))
        assert path.read_bytes() == b"hunter2"
        assert path.name == "ssh-key-K_passphrase.txt"

    def test_absent_passphrase_is_empty(self, tmp_path: Path) -> None:
        """No passphrase gives an empty file."""
        path = write_passphrase_file(tmp_path, "K", None)
        assert path.read_bytes() == b""

    @posix_permissions
    def test_owner_read_write_only(self, tmp_path: Path) -> None:
        """The passphrase file is created 0600."""
        path = write_passphrase_file(tmp_path, "K", Secret("x"))
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
