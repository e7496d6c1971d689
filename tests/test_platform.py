"""
Tests for platform detection and search-path helpers.
"""
from __future__ import annotations

import os
import sys
from unittest.mock import patch

from git_ssh_bind.platform import get_environ, get_search_path, is_unix, is_windows


class TestPlatformDetection:
    """Test platform detection functions."""

    def test_is_windows_matches_sys_platform(self) -> None:
        """is_windows() follows sys.platform."""
        assert is_windows() == (sys.platform == "win32")

    def test_is_unix_is_complement(self) -> None:
        """is_unix() is the opposite of is_windows()."""
        assert is_unix() is not is_windows()

    def test_windows_mocked(self) -> None:
        """A win32 platform is not unix."""
        with patch("git_ssh_bind.platform.sys.platform", "win32"):
            assert is_windows() is True
            assert is_unix() is False

    def test_linux_mocked(self) -> None:
        """A linux platform is unix."""
        with patch("git_ssh_bind.platform.sys.platform", "linux"):
            assert is_windows() is False
            assert is_unix() is True


class TestSearchPath:
    def test_default_is_process_environment(self) -> None:
        """Without a mapping, os.environ is used."""
        assert get_environ() is os.environ

    def test_supplied_environment(self) -> None:
        """A supplied mapping is used as is."""
        env = {"PATH": "x"}
        assert get_environ(env) is env

    def test_split_and_empty_entries_dropped(self) -> None:
        """PATH splits on os.pathsep without empty entries."""
        value = os.pathsep.join(["/usr/bin", "", "/opt/git/cmd"])
        assert get_search_path({"PATH": value}) == ["/usr/bin", "/opt/git/cmd"]

    def test_missing_path(self) -> None:
        """No PATH gives no directories."""
        assert get_search_path({}) == []
