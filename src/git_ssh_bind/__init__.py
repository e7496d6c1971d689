"""git-ssh-bind: bind SSH private-key credentials into a git environment."""

__version__ = "0.1.0"

from git_ssh_bind.binding import (
    Binding,
    BoundEnvironment,
    GitSSHPrivateKeyBinding,
    UsernamePasswordBinding,
)
from git_ssh_bind.config import binding_from_dict, load_bindings
from git_ssh_bind.credentials import (
    CredentialStore,
    FileCredentialStore,
    InMemoryCredentialStore,
    SSHUserPrivateKey,
    UsernamePassword,
    fetch_credential,
)
from git_ssh_bind.errors import (
    BindingError,
    BindingIOError,
    ConfigurationError,
    CredentialError,
    CredentialNotFound,
    CredentialTypeMismatch,
    ErrorContext,
    ResolutionError,
    ScriptEncodingError,
)
from git_ssh_bind.events import Event, EventCollector, EventEmitter, EventType
from git_ssh_bind.locator import SSHExecutableLocator
from git_ssh_bind.platform import is_unix, is_windows
from git_ssh_bind.runner import bound_environment, run_with_bindings
from git_ssh_bind.scripts import (
    PosixScriptSynthesizer,
    ScriptFlavor,
    WindowsScriptSynthesizer,
    get_synthesizer,
)
from git_ssh_bind.secret import Secret, SecretEradicated
from git_ssh_bind.validation import check_collisions
from git_ssh_bind.workspace import TransientWorkspace, Unbinder

__all__ = [
    # Bindings
    "Binding",
    "BoundEnvironment",
    "GitSSHPrivateKeyBinding",
    "UsernamePasswordBinding",
    # Config
    "binding_from_dict",
    "load_bindings",
    # Credentials
    "CredentialStore",
    "FileCredentialStore",
    "InMemoryCredentialStore",
    "SSHUserPrivateKey",
    "UsernamePassword",
    "fetch_credential",
    # Errors
    "BindingError",
    "BindingIOError",
    "ConfigurationError",
    "CredentialError",
    "CredentialNotFound",
    "CredentialTypeMismatch",
    "ErrorContext",
    "ResolutionError",
    "ScriptEncodingError",
    # Events
    "Event",
    "EventCollector",
    "EventEmitter",
    "EventType",
    # Locator
    "SSHExecutableLocator",
    # Platform
    "is_unix",
    "is_windows",
    # Runner
    "bound_environment",
    "run_with_bindings",
    # Scripts
    "PosixScriptSynthesizer",
    "ScriptFlavor",
    "WindowsScriptSynthesizer",
    "get_synthesizer",
    # Secret
    "Secret",
    "SecretEradicated",
    # Validation
    "check_collisions",
    # Workspace
    "TransientWorkspace",
    "Unbinder",
]
