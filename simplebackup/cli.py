"""Command-line interface for simplebackup.

This module provides the CLI for simplebackup, supporting commands for:
- list: List backups, newest first
- siblings: List folders that can be backed up
- backup: Back up folders with a label
- delete: Delete backups
- version: Compare installed version with the latest release
- update: Install the latest release
- cleanup: Remove leftovers of interrupted backups
- init: Create default config
- mcp-server: Start the MCP server
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from simplebackup.actions import ActionOutcome, BackupUtility
from simplebackup.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    create_default_config,
    default_configuration,
    parse_config,
    DEFAULT_CONFIG_PATH,
)
from simplebackup.logger import LoggingError, setup_logging
from simplebackup.release import ReleaseError
from simplebackup.version import CURRENT_VERSION


EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_ACTION_ERROR = 2
EXIT_UPDATE_ERROR = 3
EXIT_GENERAL_ERROR = 4


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog='simplebackup',
        description='Timestamped copies of sibling project folders'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {CURRENT_VERSION}'
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to config file (default: ~/.config/simplebackup/config.toml)',
        metavar='PATH'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    list_parser = subparsers.add_parser('list', help='List backups')
    list_parser.add_argument('--json', action='store_true', help='Output as JSON')

    subparsers.add_parser('siblings', help='List folders that can be backed up')

    backup_parser = subparsers.add_parser('backup', help='Back up folders')
    backup_parser.add_argument('folders', nargs='*', help='Sibling folder names')
    backup_parser.add_argument(
        '--label', '-l',
        required=True,
        help='Label appended to each backup folder name'
    )

    delete_parser = subparsers.add_parser('delete', help='Delete backups')
    delete_parser.add_argument('names', nargs='*', help='Backup folder names')

    version_parser = subparsers.add_parser(
        'version',
        help='Compare installed version with the latest release'
    )
    version_parser.add_argument('--json', action='store_true', help='Output as JSON')

    subparsers.add_parser('update', help='Install the latest release')

    subparsers.add_parser('cleanup', help='Remove leftovers of interrupted backups')

    init_parser = subparsers.add_parser('init', help='Create default config')
    init_parser.add_argument(
        '--force', '-f',
        action='store_true',
        help='Overwrite existing config file'
    )

    subparsers.add_parser('mcp-server', help='Start MCP server')

    return parser


def load_config(config_path: Optional[Path], verbose: bool = False) -> Optional[Configuration]:
    """
    Read the configuration, printing the problem and returning None if it is unusable.

    Without --config and without a default config file, the current
    directory is used as the app directory.
    """
    if config_path is None and not DEFAULT_CONFIG_PATH.exists():
        config = default_configuration()
        source = f"no config file, app directory {config.app_directory}"
    else:
        try:
            config = parse_config(config_path)
        except (ConfigurationError, ValidationError) as e:
            kind = "Validation" if isinstance(e, ValidationError) else "Configuration"
            print(f"{kind} error: {e}", file=sys.stderr)
            return None
        source = f"config {config_path or DEFAULT_CONFIG_PATH}"

    if verbose:
        print(f"Using {source}")
    return config


def _setup(args: argparse.Namespace) -> Optional[BackupUtility]:
    config = load_config(args.config, args.verbose)
    if config is None:
        return None
    try:
        setup_logging(config=config.logging, console=args.verbose)
    except LoggingError as e:
        print(f"Logging error: {e}", file=sys.stderr)
    return BackupUtility(config)


def _print_outcome(outcome: ActionOutcome) -> int:
    for message in outcome.messages:
        print(message.text, file=sys.stderr if message.is_error else sys.stdout)
    return EXIT_SUCCESS if outcome.success else EXIT_ACTION_ERROR


def cmd_list(args: argparse.Namespace) -> int:
    """Execute the 'list' command - list backups."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    backups = utility.list_backups()

    if args.json:
        output = []
        for record in backups:
            output.append({
                "name": record.name,
                "source": record.display.source_name,
                "label": record.display.label,
                "created_at": record.created_at.isoformat(),
            })
        print(json.dumps(output, indent=2))
        return EXIT_SUCCESS

    if not backups:
        print("No backups found.")
        return EXIT_SUCCESS

    print(f"{'Folder':<24} {'Label':<24} {'Created':<20}")
    print("-" * 70)
    for record in backups:
        source_name, label = record.display
        created = record.created_at.strftime('%Y-%m-%d %H:%M:%S')
        print(f"{source_name:<24} {label:<24} {created:<20}")
    print("-" * 70)
    print(f"Total: {len(backups)} backup(s)")

    return EXIT_SUCCESS


def cmd_siblings(args: argparse.Namespace) -> int:
    """Execute the 'siblings' command - list backup candidates."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    folders = utility.sibling_folders()
    if not folders:
        print("No folders found next to the app directory.")
    for name in folders:
        print(name)
    return EXIT_SUCCESS


def cmd_backup(args: argparse.Namespace) -> int:
    """Execute the 'backup' command - back up the given folders."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    return _print_outcome(utility.create_backups(args.folders, args.label))


def cmd_delete(args: argparse.Namespace) -> int:
    """Execute the 'delete' command - delete the given backups."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    return _print_outcome(utility.delete_backups(args.names))


def cmd_version(args: argparse.Namespace) -> int:
    """Execute the 'version' command."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    info = utility.version_info()
    if args.json:
        print(json.dumps({
            "current": info.current,
            "latest": info.latest,
            "status": info.status.value,
            "message": info.message,
            "release_url": info.release_url,
        }, indent=2))
    else:
        print(info.message)
        if info.latest:
            print(f"Release notes: {info.release_url}")
    return EXIT_SUCCESS


def cmd_update(args: argparse.Namespace) -> int:
    """Execute the 'update' command - install the latest release."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    try:
        tag = utility.update()
    except ReleaseError as e:
        print(f"Update failed: {e}", file=sys.stderr)
        return EXIT_UPDATE_ERROR

    print(f"Installed {tag or 'latest release'}.")
    return EXIT_SUCCESS


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Execute the 'cleanup' command."""
    utility = _setup(args)
    if utility is None:
        return EXIT_CONFIG_ERROR

    removed = utility.cleanup_incomplete()
    print(f"Removed {removed} incomplete backup(s).")
    return EXIT_SUCCESS


def cmd_init(args: argparse.Namespace) -> int:
    """Execute the 'init' command - create default config."""
    config_path = args.config or DEFAULT_CONFIG_PATH

    if config_path.exists() and not args.force:
        print(f"Config file already exists: {config_path}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(create_default_config(Path.cwd()))
    except OSError as e:
        print(f"Cannot write config file {config_path}: {e}", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    print(f"Created config file: {config_path}")
    return EXIT_SUCCESS


def cmd_mcp_server(args: argparse.Namespace) -> int:
    """Execute the 'mcp-server' command."""
    from simplebackup.mcp_server import run_server

    run_server(config_path=args.config)
    return EXIT_SUCCESS


COMMANDS = {
    'list': cmd_list,
    'siblings': cmd_siblings,
    'backup': cmd_backup,
    'delete': cmd_delete,
    'version': cmd_version,
    'update': cmd_update,
    'cleanup': cmd_cleanup,
    'init': cmd_init,
    'mcp-server': cmd_mcp_server,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_SUCCESS

    handler = COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return EXIT_GENERAL_ERROR

    try:
        return handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
