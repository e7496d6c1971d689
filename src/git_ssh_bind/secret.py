"""
Secret values that do not leak through str(), repr() or logging.

Secret stores its bytes in a ctypes buffer so it can be overwritten when
the binding is done with it. The plaintext is only available through the
explicit reveal() call.
"""
from __future__ import annotations

import ctypes
import os
from typing import Any


class SecretEradicated(Exception):
    """Raised when accessing an eradicated Secret."""
    pass


class Secret:
    """
    A passphrase or password held outside ordinary string formatting.

    Usage:
        passphrase = Secret("hunter2")
        log.info(f"using {passphrase}")   # logs "using <hidden>"
        plain = passphrase.reveal()       # explicit access
        passphrase.eradicate()
    """

    __slots__ = ("_buffer", "_length", "_eradicated")

    def __init__(self, value: str | bytes) -> None:
        if not isinstance(value, (str, bytes)):
            raise TypeError(f"Secret requires str or bytes, got {type(value).__name__}")
        data = value.encode("utf-8") if isinstance(value, str) else value

        self._length = len(data)
        self._eradicated = False
        self._buffer = (ctypes.c_char * self._length)()
        ctypes.memmove(self._buffer, data, self._length)

    @staticmethod
    def to_plain(secret: "Secret | None") -> str:
        """Reveal a possibly-absent secret; None becomes the empty string."""
        if secret is None:
            return ""
        return secret.reveal()

    def _check_eradicated(self) -> None:
        if self._eradicated:
            raise SecretEradicated("Secret has been eradicated and cannot be accessed")

    def reveal(self) -> str:
        """
        Return the plaintext.

        Raises:
            SecretEradicated: If the secret has been eradicated
        """
        self._check_eradicated()
        return bytes(self._buffer).decode("utf-8")

    def eradicate(self) -> None:
        """Overwrite the buffer with random bytes. Idempotent."""
        if not self._eradicated:
            ctypes.memmove(self._buffer, os.urandom(self._length), self._length)
            self._eradicated = True

    @property
    def is_eradicated(self) -> bool:
        return self._eradicated

    def __str__(self) -> str:
        return "<eradicated>" if self._eradicated else "<hidden>"

    def __repr__(self) -> str:
        return f"Secret({self})"

    def __len__(self) -> int:
        self._check_eradicated()
        return self._length

    def __bool__(self) -> bool:
        self._check_eradicated()
        return self._length > 0

    def __eq__(self, other: Any) -> bool:
        self._check_eradicated()
        if isinstance(other, Secret):
            other._check_eradicated()
            return bytes(self._buffer) == bytes(other._buffer)
        if isinstance(other, str):
            return self.reveal() == other
        return NotImplemented

    def __hash__(self) -> int:
        self._check_eradicated()
        return hash(bytes(self._buffer))
