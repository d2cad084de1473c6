#!/usr/bin/env python3
"""Main entry point for the NixplayFS filesystem.

This module handles:
- Component initialization (pattern table, router, service, RemoteFs)
- FUSE filesystem mounting
- Signal handling for graceful shutdown
- Cleanup on exit

Example:
    >>> from nixplayfs.main import run_nixplayfs
    >>> run_nixplayfs(args, config, logger)
"""

import argparse
import signal
import sys
import threading
from typing import Any, Dict, Optional

from fuse import FUSE

from nixplayfs.backend.errors import FsError
from nixplayfs.backend.fs import RemoteFs
from nixplayfs.backend.loader import create_service
from nixplayfs.backend.service import PhotoService
from nixplayfs.core.constants import ConfigKey
from nixplayfs.fuse.operations import NixplayFSOperations
from nixplayfs.infrastructure.config_manager import ConfigError, ConfigManager
from nixplayfs.infrastructure.logger import Logger
from nixplayfs.routing.patterns import PatternTableError, build_pattern_table
from nixplayfs.routing.router import Router


class StartupError(Exception):
    """Components could not be initialized."""

    pass


class NixplayFSMain:
    """
    Main class for NixplayFS filesystem management.

    Handles component lifecycle, FUSE mounting, and shutdown.
    """

    def __init__(self, args: argparse.Namespace, config: ConfigManager, logger: Logger):
        """
        Initialize NixplayFS main controller.

        Args:
            args: Parsed command-line arguments
            config: Loaded configuration manager
            logger: Logger instance
        """
        self.args = args
        self.config = config
        self.logger = logger
        self.shutdown_event = threading.Event()
        self._previous_handlers: Dict[int, Any] = {}

        # Components
        self.router: Optional[Router] = None
        self.service: Optional[PhotoService] = None
        self.remote_fs: Optional[RemoteFs] = None
        self.fuse_ops: Optional[NixplayFSOperations] = None

    def initialize_components(self) -> None:
        """
        Initialize all NixplayFS components.

        Creates and configures:
        - Pattern table and Router
        - PhotoService
        - RemoteFs
        - NixplayFSOperations

        Raises:
            StartupError: If a component cannot be created
        """
        self.logger.info("Initializing components...")

        # 1. Pattern table; a defect here is fatal
        self.logger.debug("Building pattern table")
        try:
            table = build_pattern_table()
        except PatternTableError as e:
            raise StartupError(f"Built-in pattern table is invalid: {e}")
        self.router = Router(table)

        # 2. Photo service
        section = self.config.section()
        service_config = section.get(ConfigKey.SERVICE, {})
        self.logger.debug("Creating photo service", service=service_config)
        try:
            self.service = create_service(
                service_config,
                user_name=section.get(ConfigKey.USER_NAME),
                password=section.get(ConfigKey.PASSWORD),
            )
        except ConfigError as e:
            raise StartupError(str(e))

        # 3. Remote filesystem
        root = self.config.get("nixplayfs.root", "")
        self.logger.debug("Creating RemoteFs", root=root)
        try:
            self.remote_fs = RemoteFs.new(
                self.service, root, router=self.router, logger=self.logger
            )
        except FsError as e:
            raise StartupError(f"Cannot open root {root!r}: {e}")
        if self.remote_fs.root_is_file:
            raise StartupError(f"Root {root!r} is a photo, not a directory")

        # 4. FUSE Operations
        self.logger.debug("Creating NixplayFSOperations")
        self.fuse_ops = NixplayFSOperations(self.remote_fs, config=self.config, logger=self.logger)

        self.logger.info("All components initialized successfully")

    def setup_signal_handlers(self) -> None:
        """
        Setup signal handlers for graceful shutdown.

        Handles:
        - SIGTERM: Graceful shutdown
        - SIGINT: Graceful shutdown (Ctrl+C)

        A signal received before the mount cancels it. Once mounted,
        libfuse installs its own handlers and unmounts on these signals.
        The previous handlers are restored by cleanup().
        """

        def signal_handler(signum, frame):
            """Handle shutdown signals."""
            sig_name = signal.Signals(signum).name
            self.logger.info(f"Received signal {sig_name}, shutting down...")
            self.shutdown_event.set()

        for signum in (signal.SIGTERM, signal.SIGINT):
            self._previous_handlers[signum] = signal.signal(signum, signal_handler)

        self.logger.debug("Signal handlers registered")

    def _build_fuse_options(self) -> Dict[str, Any]:
        """Build FUSE mount options dictionary."""
        options: Dict[str, Any] = {"fsname": "nixplayfs"}

        if self.config.get("nixplayfs.readonly", False):
            options["ro"] = True

        if self.config.get("nixplayfs.allow_other", False):
            options["allow_other"] = True

        for opt in getattr(self.args, "fuse_options", None) or []:
            if "=" in opt:
                key, value = opt.split("=", 1)
                options[key] = value
            else:
                options[opt] = True

        return options

    def mount_filesystem(self) -> int:
        """
        Mount the FUSE filesystem (blocks until unmount).

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        mount_point = self.args.mount
        self.logger.info(
            f"Mounting NixplayFS at: {mount_point}",
            root=self.remote_fs.root,
            service=repr(self.service),
        )

        try:
            FUSE(
                self.fuse_ops,
                mount_point,
                foreground=self.args.foreground,
                nothreads=getattr(self.args, "single_threaded", False),
                **self._build_fuse_options(),
            )
        except RuntimeError as e:
            self.logger.error(f"FUSE mount failed: {e}")
            return 1

        self.logger.info("FUSE unmounted successfully")
        return 0

    def cleanup(self) -> None:
        """Release the service and log final statistics."""
        self.logger.info("Cleaning up...")

        if self.fuse_ops:
            self.logger.info("Final statistics", **self.fuse_ops.get_stats())

        if self.service:
            try:
                self.service.close()
            except Exception as e:
                self.logger.warning(f"Failed to close photo service: {e}")

        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

        self.logger.info("Cleanup complete")

    def run(self) -> int:
        """
        Run NixplayFS main loop.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        try:
            self.setup_signal_handlers()
            self.initialize_components()

            if self.shutdown_event.is_set():
                self.logger.info("Shutdown requested during startup, not mounting")
                return 0

            return self.mount_filesystem()

        except StartupError as e:
            self.logger.error(f"Startup failed: {e}")
            return 1

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return 130

        except Exception as e:
            self.logger.exception("Fatal error", e)
            return 1

        finally:
            self.cleanup()


def run_nixplayfs(args: argparse.Namespace, config: ConfigManager, logger: Logger) -> int:
    """
    Main entry point for running NixplayFS.

    Args:
        args: Parsed command-line arguments
        config: Configuration manager
        logger: Logger instance

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    return NixplayFSMain(args, config, logger).run()


def main():
    """Entry point when run as standalone script."""
    from nixplayfs.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
