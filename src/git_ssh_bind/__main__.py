"""
CLI interface for git-ssh-bind.

Runs a command with SSH private-key credentials bound into its
environment, then deletes every transient file.

Usage:
    python -m git_ssh_bind --credentials DIR --credentials-id deploy-key \\
        --key-file-variable SSH_KEY -- git clone git@example.com:repo.git
    python -m git_ssh_bind --credentials DIR --config bindings.json -- make
    python -m git_ssh_bind --credentials DIR --config bindings.json --print-variables
    python -m git_ssh_bind --events bind.jsonl -v ...
    python -m git_ssh_bind --help
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from git_ssh_bind.binding import Binding, GitSSHPrivateKeyBinding
from git_ssh_bind.config import load_bindings
from git_ssh_bind.credentials import FileCredentialStore
from git_ssh_bind.errors import BindingError, ConfigurationError
from git_ssh_bind.events import EventEmitter
from git_ssh_bind.runner import run_with_bindings
from git_ssh_bind.validation import check_collisions

EXIT_BINDING_FAILED = 1
EXIT_USAGE = 2
EXIT_COMMAND_NOT_FOUND = 127


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-ssh-bind",
        description="Run a command with SSH private-key credentials bound "
                    "into its environment for git",
    )
    parser.add_argument(
        "--credentials",
        metavar="DIR",
        type=Path,
        help="Directory of <id>.json credential documents (required to run a command)",
    )
    parser.add_argument(
        "--workspace",
        metavar="DIR",
        type=Path,
        default=Path.cwd(),
        help="Build workspace; transient files are created beneath it "
             "(default: current directory)",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        type=Path,
        help="JSON file of binding definitions (instead of the inline options)",
    )

    inline = parser.add_argument_group("inline binding")
    inline.add_argument("--credentials-id", help="Credential identifier")
    inline.add_argument(
        "--key-file-variable",
        help="Variable receiving the private key file path",
    )
    inline.add_argument("--username-variable", help="Variable receiving the user name")
    inline.add_argument(
        "--passphrase-variable",
        help="Variable receiving the key passphrase",
    )
    inline.add_argument(
        "--git-exe",
        help="git executable, used to find ssh.exe on Windows",
    )

    parser.add_argument(
        "--events",
        metavar="FILE",
        type=Path,
        help="Append JSONL binding events to FILE",
    )
    parser.add_argument(
        "--print-variables",
        action="store_true",
        help="Print the variables the bindings export and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only log errors",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run (after --)",
    )
    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def bindings_from_args(args: argparse.Namespace) -> list[Binding]:
    """
    Build the bindings requested on the command line.

    Raises:
        ConfigurationError: If neither --config nor the inline options are
            given, or the definitions are invalid
    """
    if args.config is not None:
        return load_bindings(args.config)
    if not args.credentials_id or not args.key_file_variable:
        raise ConfigurationError(
            "either --config or both --credentials-id and --key-file-variable "
            "are required"
        )
    return [
        GitSSHPrivateKeyBinding(
            key_file_variable=args.key_file_variable,
            credentials_id=args.credentials_id,
            username_variable=args.username_variable,
            passphrase_variable=args.passphrase_variable,
            git_executable=args.git_exe,
        )
    ]


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]

    try:
        bindings = bindings_from_args(args)
        check_collisions(bindings)
    except ConfigurationError as e:
        print(f"git-ssh-bind: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.print_variables:
        for binding in bindings:
            for name in sorted(binding.variables() | binding.reserved_variables()):
                print(name)
        return 0

    if not command:
        parser.error("a command to run is required")
    if args.credentials is None:
        parser.error("--credentials is required to run a command")

    store = FileCredentialStore(args.credentials)
    with EventEmitter(jsonl_path=args.events) as emitter:
        try:
            return run_with_bindings(
                command, bindings, args.workspace, store, emitter=emitter
            )
        except BindingError as e:
            stage = f" during {e.stage}" if e.stage else ""
            print(f"git-ssh-bind: binding failed{stage}: {e}", file=sys.stderr)
            return EXIT_BINDING_FAILED
        except FileNotFoundError as e:
            print(f"git-ssh-bind: {e}", file=sys.stderr)
            return EXIT_COMMAND_NOT_FOUND


if __name__ == "__main__":
    sys.exit(main())
