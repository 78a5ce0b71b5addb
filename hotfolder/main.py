#!/usr/bin/env python3
"""
Hotfolder - main entry point.

Watches a folder for new files, logs their content, optionally prints them
through the sequential print queue and moves them to the archive folder.

Usage:
    hotfolder                                   # settings from env / .env
    hotfolder --watch-path ./in --move-to ./done --no-print
    hotfolder --list-strategies                 # show detected print tools
"""

import argparse
import signal
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from hotfolder.domains.intake.supervisor import WatchSupervisor
from hotfolder.domains.printing.strategies import build_strategies
from hotfolder.errors import InitializationError
from hotfolder.utils.config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings):
    """Install the stdout sink and, if configured, a rotating file sink."""
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=settings.log_level.upper())

    if settings.log_file:
        logger.add(
            settings.log_file,
            format=LOG_FORMAT,
            level=settings.log_level.upper(),
            rotation="10 MB",
            retention="14 days",
            colorize=False,
        )

    def _thread_excepthook(args):
        logger.opt(exception=(args.exc_type, args.exc_value, args.exc_traceback)).error(
            f"Uncaught exception in thread {args.thread.name if args.thread else '?'}: {args.exc_value}"
        )

    threading.excepthook = _thread_excepthook


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Watch a folder, print new files and move them to an archive folder.",
    )
    parser.add_argument(
        "--watch-path",
        type=Path,
        default=None,
        help="Folder to watch for new files (created if missing).",
    )
    parser.add_argument(
        "--move-to",
        type=Path,
        default=None,
        help="Archive folder for processed files.",
    )
    parser.add_argument(
        "--keep-in-place",
        action="store_true",
        help="Leave processed files in the watch folder.",
    )
    parser.add_argument(
        "--print",
        dest="enable_printing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable printing of new files.",
    )
    parser.add_argument(
        "--printer",
        default=None,
        help="Destination printer name (default: system default printer).",
    )
    parser.add_argument(
        "--poll",
        type=float,
        default=None,
        help="Use a polling observer with this interval in seconds (network shares).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG, INFO, WARNING, ...).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file, rotated at 10 MB.",
    )
    parser.add_argument(
        "--list-strategies",
        action="store_true",
        help="List configured print methods and whether their programs were found, then exit.",
    )

    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Apply command-line overrides on top of environment settings."""
    move_to = "" if args.keep_in_place else args.move_to

    return get_settings(
        watch_path=args.watch_path,
        move_to_folder=move_to,
        enable_printing=args.enable_printing,
        printer_name=args.printer,
        use_polling=True if args.poll is not None else None,
        poll_interval=args.poll,
        log_level=args.log_level,
        log_file=args.log_file,
    )


def list_strategies(settings: Settings) -> int:
    """Report each configured print method and where its program lives."""
    for kind, strategies in build_strategies(settings).items():
        logger.info(f"{kind.value}:")
        if not strategies:
            logger.warning("  (no print methods configured)")
        for index, strategy in enumerate(strategies, 1):
            location = strategy.location
            if location:
                logger.info(f"  {index}. {strategy.name}: {location}")
            else:
                logger.warning(f"  {index}. {strategy.name}: not found")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI."""

    args = parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(settings)

    if args.list_strategies:
        return list_strategies(settings)

    logger.info("Hotfolder Service Starting...")
    logger.info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info(f"Watching: {settings.watch_path}")
    logger.info(f"Printer mode: {'ENABLED' if settings.enable_printing else 'DISABLED'}")
    if settings.move_to_folder:
        logger.info(f"Files will be moved to: {settings.move_to_folder} after processing")
    else:
        logger.info("Files will be left in the watch folder after processing")

    supervisor = WatchSupervisor(settings)

    try:
        supervisor.initialize()
    except InitializationError as e:
        logger.error(f"Fatal error starting Hotfolder: {e}")
        return 1

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, stopping service...")
        supervisor.request_stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        supervisor.start()
        supervisor.run()
    finally:
        supervisor.stop()
        time.sleep(settings.shutdown_grace)

    logger.success("Service stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
