"""
Binding error taxonomy with structured data for JSONL logging.

Every failure of a bind attempt is fatal to that attempt and is raised as
one of the types below. Each carries an ErrorContext naming the stage that
failed, so the enclosing build step can report it and the event log can
record it.

Error hierarchy:
- BindingError (base)
  - ConfigurationError (bad or colliding variable names, bad config files)
  - CredentialError
    - CredentialNotFound
    - CredentialTypeMismatch
  - BindingIOError (transient directory, key, passphrase or script writes)
  - ResolutionError (no ssh executable found on Windows)
  - ScriptEncodingError (value cannot be embedded in a wrapper script)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any


@dataclass
class ErrorContext:
    """
    Structured context for binding errors.

    Never carries secret material: only identifiers, stage names and paths.
    """
    credential_id: str | None = None
    stage: str | None = None
    path: str | None = None
    variable: str | None = None
    original_error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if key == "extra":
                field_names = {f.name for f in fields(self)} - {"extra"}
                collisions = field_names & value.keys()
                assert not collisions, (
                    f"Extra keys collision with dataclass field names: "
                    f"{collisions}. Use distinct key names in extra."
                )
                result.update(value)
            else:
                result[key] = value
        return result


class BindingError(Exception):
    """
    Base exception for all binding errors.

    All binding errors carry structured context for logging and debugging.
    """

    def __init__(self, message: str, context: ErrorContext | None = None) -> None:
        assert isinstance(message, str) and message.strip(), (
            f"BindingError message must be a non-empty string, got {message!r}"
        )
        super().__init__(message)
        self.context = context or ErrorContext()

    @property
    def error_type(self) -> str:
        """Return the error type name for logging."""
        return self.__class__.__name__

    @property
    def stage(self) -> str | None:
        return self.context.stage

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSONL logging."""
        return {
            "error_type": self.error_type,
            "message": str(self),
            **self.context.to_dict(),
        }


class ConfigurationError(BindingError):
    """
    Binding configuration is invalid.

    Raised before any I/O when:
    - A variable name is empty or not a valid environment variable name
    - Two configured variable names are the same
    - A configured name shadows GIT_SSH, GIT_SSH_VARIANT or SSH_ASKPASS
    - Several bindings export the same variable
    - A declarative binding definition is malformed
    """

    def __init__(
        self,
        message: str,
        variable: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        context.stage = context.stage or "configure"
        if variable is not None:
            context.variable = variable
        super().__init__(message, context)


# ---------------------------------------------------------------------------
# Credential Errors
# ---------------------------------------------------------------------------

class CredentialError(BindingError):
    """Base class for credential store errors."""

    def __init__(
        self,
        message: str,
        credential_id: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        context.stage = context.stage or "fetch"
        if credential_id is not None:
            context.credential_id = credential_id
        super().__init__(message, context)


class CredentialNotFound(CredentialError):
    """No credential exists under the requested identifier."""
    pass


class CredentialTypeMismatch(CredentialError):
    """
    The credential exists but is of the wrong kind.

    For example a username/password credential was given to a binding that
    needs an SSH private key.
    """

    def __init__(
        self,
        message: str,
        credential_id: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        if expected:
            context.extra["expected_type"] = expected
        if actual:
            context.extra["actual_type"] = actual
        super().__init__(message, credential_id, context)


# ---------------------------------------------------------------------------
# Filesystem and Resolution Errors
# ---------------------------------------------------------------------------

class BindingIOError(BindingError):
    """
    Failed to create or delete a transient artifact.

    This is raised when:
    - The transient directory cannot be created
    - The key file or passphrase file cannot be written
    - A wrapper script cannot be written
    - The transient directory cannot be deleted on release
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        stage: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        if path is not None:
            context.path = path
        if stage is not None:
            context.stage = stage
        super().__init__(message, context)


class ResolutionError(BindingError):
    """
    No ssh executable could be located.

    Only raised when generating Windows scripts, where ssh is not assumed to
    be on the search path. Lists the candidates that were probed.
    """

    def __init__(
        self,
        message: str,
        candidates: list[str] | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        context.stage = context.stage or "resolve"
        if candidates:
            context.extra["candidates"] = list(candidates)
        super().__init__(message, context)


class ScriptEncodingError(BindingError):
    """A value contains characters that cannot be embedded in a script."""

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        context.stage = context.stage or "synthesize"
        if field_name:
            context.extra["field"] = field_name
        super().__init__(message, context)
