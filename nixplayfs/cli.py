#!/usr/bin/env python3
"""Command-line interface for NixplayFS.

This module provides the CLI for mounting a remote photo service:
- Argument parsing and validation
- Configuration loading (YAML file, environment, arguments)
- Mount point validation
- Logging setup
- Help and version information

Example:
    >>> from nixplayfs.cli import parse_arguments
    >>> args = parse_arguments(["--mount", "/mnt/photos", "--root", "album"])
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from nixplayfs.core.constants import NIXPLAYFS_VERSION, ConfigKey
from nixplayfs.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource
from nixplayfs.infrastructure.logger import Logger

VERSION = NIXPLAYFS_VERSION
DESCRIPTION = "NixplayFS - Remote photo albums as a filesystem"


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    pass


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If the arguments fail validation
    """
    parser = argparse.ArgumentParser(
        prog="nixplayfs",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mount every album and playlist
  nixplayfs --config nixplayfs.yaml --mount /mnt/photos

  # Mount a single album in the foreground with debug logging
  nixplayfs --config nixplayfs.yaml --mount /mnt/vacation --root album/Vacation \\
      --foreground --debug

  # Try the layout against an in-memory service
  nixplayfs --service memory --mount /mnt/photos --foreground

Credentials are read from the configuration file or from the
NIXPLAYFS_USER_NAME and NIXPLAYFS_PASSWORD environment variables.
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )

    parser.add_argument(
        "-m",
        "--mount",
        metavar="DIR",
        type=str,
        required=True,
        help="Mount point directory (required)",
    )

    parser.add_argument(
        "-r",
        "--root",
        metavar="PATH",
        type=str,
        help="Path inside the photo hierarchy to expose (e.g. album/Vacation)",
    )

    # Remote service options
    remote_group = parser.add_argument_group("remote options")

    remote_group.add_argument(
        "--service",
        metavar="SPEC",
        type=str,
        help="Photo service: a built-in type ('memory') or a module:callable factory",
    )

    remote_group.add_argument(
        "--user-name",
        metavar="NAME",
        type=str,
        help="Account name on the photo service",
    )

    # Filesystem options
    fs_group = parser.add_argument_group("filesystem options")

    fs_group.add_argument(
        "--read-only",
        action="store_true",
        help="Mount read-only (default: read-write)",
    )

    fs_group.add_argument(
        "--allow-other",
        action="store_true",
        help="Allow other users to access the filesystem",
    )

    # Logging options
    log_group = parser.add_argument_group("logging options")

    log_group.add_argument(
        "--foreground",
        action="store_true",
        help="Run in foreground (don't daemonize)",
    )

    log_group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (traces every filesystem operation)",
    )

    log_group.add_argument(
        "--log-file",
        metavar="FILE",
        type=str,
        help="Log file path",
    )

    # FUSE options
    fuse_group = parser.add_argument_group("FUSE options")

    fuse_group.add_argument(
        "--single-threaded",
        action="store_true",
        help="Serve one FUSE request at a time",
    )

    fuse_group.add_argument(
        "--fuse-opt",
        metavar="OPT",
        action="append",
        dest="fuse_options",
        help="Additional FUSE options (can be specified multiple times)",
    )

    parsed = parser.parse_args(args)

    _validate_arguments(parsed)

    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Raises:
        CLIError: If validation fails
    """
    mount_path = Path(args.mount)

    if not mount_path.exists():
        raise CLIError(f"Mount point does not exist: {args.mount}")

    if not mount_path.is_dir():
        raise CLIError(f"Mount point is not a directory: {args.mount}")

    if list(mount_path.iterdir()):
        raise CLIError(
            f"Mount point is not empty: {args.mount}\n"
            "For safety, NixplayFS requires an empty mount point"
        )

    if args.config:
        config_path = Path(args.config)

        if not config_path.exists():
            raise CLIError(f"Configuration file does not exist: {args.config}")

        if not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")


def build_config_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build the configuration overrides given on the command line.

    Only options the user actually set are included, so they never mask
    values from the configuration file.

    Args:
        args: Parsed arguments namespace

    Returns:
        Contents of the ``nixplayfs`` section
    """
    config: Dict[str, Any] = {}

    if args.root is not None:
        config[ConfigKey.ROOT] = args.root
    if args.read_only:
        config[ConfigKey.READONLY] = True
    if args.allow_other:
        config[ConfigKey.ALLOW_OTHER] = True
    if args.user_name:
        config[ConfigKey.USER_NAME] = args.user_name

    if args.service:
        if ":" in args.service:
            config[ConfigKey.SERVICE] = {ConfigKey.SERVICE_FACTORY: args.service}
        else:
            config[ConfigKey.SERVICE] = {ConfigKey.SERVICE_TYPE: args.service}

    logging_config: Dict[str, Any] = {}
    if args.debug:
        logging_config[ConfigKey.LOG_LEVEL] = "DEBUG"
    if args.log_file:
        logging_config[ConfigKey.LOG_FILE] = args.log_file
    if logging_config:
        config[ConfigKey.LOGGING] = logging_config

    return config


def load_configuration(args: argparse.Namespace) -> ConfigManager:
    """
    Load and validate configuration from all sources.

    Args:
        args: Parsed arguments namespace

    Returns:
        Configuration manager with file, environment and CLI layers

    Raises:
        CLIError: If the configuration cannot be loaded or is invalid
    """
    try:
        config = ConfigManager()
        if args.config:
            config.load_file(args.config)
        config.load_dict(build_config_from_args(args), ConfigSource.CLI_ARGS)
        config.validate()
    except ConfigError as e:
        raise CLIError(f"Invalid configuration: {e}")

    return config


def setup_logging(args: argparse.Namespace, config: ConfigManager) -> Logger:
    """
    Setup logging based on arguments and configuration.

    Args:
        args: Parsed arguments namespace
        config: Configuration manager

    Returns:
        Configured logger instance
    """
    log_level = "DEBUG" if args.debug else config.get("nixplayfs.logging.level", "INFO")
    log_file = args.log_file or config.get("nixplayfs.logging.file")

    logger = Logger("nixplayfs", level=log_level)

    if log_file:
        logger.add_handler(logger.create_file_handler(log_file))
        logger.info(f"Logging to file: {log_file}")

    return logger


def validate_runtime_environment() -> None:
    """
    Validate runtime environment for NixplayFS.

    Raises:
        CLIError: If FUSE is unavailable
    """
    try:
        import fuse

        if not hasattr(fuse, "FUSE"):
            raise CLIError(
                "FUSE library is too old or incompatible\n" "Install fusepy: pip install fusepy"
            )

    except ImportError:
        raise CLIError("FUSE library not found\n" "Install fusepy: pip install fusepy")

    except OSError as e:
        raise CLIError(f"libfuse could not be loaded: {e}")

    if not os.path.exists("/dev/fuse"):
        raise CLIError(
            "/dev/fuse not found\n"
            "FUSE kernel module may not be loaded\n"
            "Try: sudo modprobe fuse"
        )

    if not os.access("/dev/fuse", os.R_OK | os.W_OK):
        raise CLIError(
            "No permission to access /dev/fuse\n"
            "You may need to add your user to the 'fuse' group"
        )


def print_banner(logger: Logger) -> None:
    """Print startup banner with version information."""
    logger.info("=" * 60)
    logger.info(f"NixplayFS v{VERSION}")
    logger.info(DESCRIPTION)
    logger.info("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Handles argument parsing, validation and configuration, then passes
    control to nixplayfs.main for mounting.
    """
    try:
        args = parse_arguments(argv)

        validate_runtime_environment()

        config = load_configuration(args)

        logger = setup_logging(args, config)

        if args.foreground:
            print_banner(logger)

        from nixplayfs.main import run_nixplayfs

        return run_nixplayfs(args, config, logger)

    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
