"""
Chain archiver CLI entry point.

Keep a version-controlled archive of a node's raw blocks up to date.

Usage::

    python -m chain_archive /storage/bch-mainnet
    python -m chain_archive --cli "bitcoin-cli -datadir=/my/data" /storage/bch-mainnet
    python -m chain_archive --rpc-cookie ~/.bitcoin/.cookie --trigger subscribe /storage/btc
    python -m chain_archive --config archive.yaml --once

Options:
    --config         YAML file with settings (CLI flags take precedence)
    --node           Node client: rpc (HTTP JSON-RPC) or cli (command-line tool)
    --cli            Node command-line tool with arguments (implies --node cli)
    --trigger        Change detection: poll (best block hash) or subscribe (ZeroMQ)
    --no-push        Commit without pushing
    --no-commit      Write files only, no git
    --once           Run a single sync cycle and exit
    --api            Serve /health, /status and /metrics
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

import zmq

from chain_archive.commands import CommandError, SubprocessRunner
from chain_archive.config import ArchiveConfig, ConfigError, ValidationError
from chain_archive.service import ArchiveService
from chain_archive.vcs import ensure_repository

logger = logging.getLogger(__name__)


class LogFormatter(logging.Formatter):
    """
    One-line log records: time, level, component and message.

    Components are logger names without the package prefix (``sync.engine``,
    ``vcs.committer``). On a terminal the level and the component are colored.
    """

    DATEFMT = "%Y-%m-%d %H:%M:%S"

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def __init__(self, *, color: bool = True) -> None:
        super().__init__(datefmt=self.DATEFMT)
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        """Format a record, appending the traceback when one is attached."""
        timestamp = self.formatTime(record, self.datefmt)
        levelname = f"{record.levelname:8}"
        component = record.name.removeprefix("chain_archive.")

        if self.color:
            level_color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
            timestamp = f"{self.GREY}{timestamp}{self.RESET}"
            levelname = f"{level_color}{levelname}{self.RESET}"
            component = f"{self.BLUE}{component}{self.RESET}"

        line = f"{timestamp} {levelname} {component}: {record.getMessage()}"

        # Cycle failures are logged with their traceback.
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    verbose: bool = False, no_color: bool = False, stream: TextIO | None = None
) -> None:
    """
    Send archiver logs to ``stream`` (stderr by default).

    Colors are used only on a terminal and never with ``no_color``, so
    redirected logs and journald captures stay plain text.
    """
    level = logging.DEBUG if verbose else logging.INFO
    stream = sys.stderr if stream is None else stream

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(LogFormatter(color=not no_color and stream.isatty()))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # Per-request lines from the HTTP client would drown the sync log.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="chain-archive",
        description="Archive a node's raw blocks into a version-controlled directory tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "repo_path",
        nargs="?",
        type=Path,
        help="Archive repository (created and initialised if missing)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--node",
        choices=["rpc", "cli"],
        default=None,
        help="Node client (default: rpc)",
    )
    parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint URL")
    parser.add_argument("--rpc-user", default=None, help="JSON-RPC user")
    parser.add_argument("--rpc-password", default=None, help="JSON-RPC password")
    parser.add_argument(
        "--rpc-cookie",
        type=Path,
        default=None,
        help="Node .cookie file with RPC credentials",
    )
    parser.add_argument(
        "--cli",
        default=None,
        help='Node command-line tool, e.g. "bitcoin-cli -datadir=/my/data"',
    )
    parser.add_argument(
        "--trigger",
        choices=["poll", "subscribe"],
        default=None,
        help="Change detection (default: poll)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between best block hash queries (default: 60)",
    )
    parser.add_argument(
        "--zmq-endpoint",
        default=None,
        help="ZeroMQ hashblock publisher (default: tcp://127.0.0.1:28332)",
    )
    parser.add_argument(
        "--reorg-window",
        type=int,
        default=None,
        help="Heights below the archive tip re-checked every cycle (default: 11)",
    )
    parser.add_argument(
        "--no-push",
        action="store_true",
        help="Commit without pushing",
    )
    parser.add_argument(
        "--no-commit",
        action="store_true",
        help="Write block files only, without git",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync cycle and exit",
    )
    parser.add_argument(
        "--api",
        action="store_true",
        help="Serve /health, /status and /metrics",
    )
    parser.add_argument(
        "--api-port",
        type=int,
        default=None,
        help="API port (default: 9380)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ArchiveConfig:
    """
    Merge parsed arguments over the optional configuration file.

    Flags left unset do not override file values. Boolean switches only ever
    turn their feature off (or, for ``--api``, on).

    Raises:
        ConfigError: If the configuration file cannot be read.
        ValidationError: If the merged settings are invalid.
    """
    overrides: dict[str, Any] = {
        "repo_path": args.repo_path,
        "node": args.node or ("cli" if args.cli else None),
        "rpc_url": args.rpc_url,
        "rpc_user": args.rpc_user,
        "rpc_password": args.rpc_password,
        "rpc_cookie_file": args.rpc_cookie,
        "cli_command": args.cli,
        "trigger": args.trigger,
        "poll_interval": args.poll_interval,
        "zmq_endpoint": args.zmq_endpoint,
        "reorg_window": args.reorg_window,
        "push": False if args.no_push else None,
        "commit": False if args.no_commit else None,
        "api_enabled": True if args.api else None,
        "api_port": args.api_port,
    }
    return ArchiveConfig.from_sources(args.config, **overrides)


async def run_archiver(config: ArchiveConfig, *, once: bool = False) -> int:
    """
    Prepare the repository and run the archive service.

    Args:
        config: Validated settings.
        once: Run a single cycle instead of following the chain.

    Returns:
        Process exit status.
    """
    runner = SubprocessRunner()

    if config.commit:
        await ensure_repository(
            config.repo_path,
            runner,
            blocks_dir=config.blocks_dir,
            extension=config.extension,
        )
    else:
        config.archive_root.mkdir(parents=True, exist_ok=True)

    service = ArchiveService.from_config(config, runner=runner)

    if once:
        return 0 if await service.run_once() else 1

    logger.info("Archiving into %s", config.archive_root)
    await service.run()
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except (ConfigError, ValidationError) as exc:
        parser.error(str(exc))

    setup_logging(args.verbose, args.no_color)

    try:
        return asyncio.run(run_archiver(config, once=args.once))
    except CommandError as exc:
        logger.error("Cannot prepare repository %s: %s", config.repo_path, exc)
        return 1
    except (OSError, zmq.ZMQError) as exc:
        logger.error("Cannot start: %s", exc)
        return 1
    except ExceptionGroup as group:
        # Socket and server failures surface from the service task group.
        failures, unexpected = group.split((OSError, zmq.ZMQError))
        if failures is None or unexpected is not None:
            raise
        logger.error("Service stopped: %s", "; ".join(str(exc) for exc in failures.exceptions))
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
