"""
Command line entry point.

    streamsync [options] SRC [SRC ...] DEST

Options that are not given fall back to STREAMSYNC_* environment variables and
the settings files, then to the built-in defaults.
"""

import argparse
import asyncio
import logging
import shlex
import signal
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from . import __version__
from .config import Settings
from .dependencies import configure_settings, get_orchestrator
from .logging_config import setup_logging
from .models import PipelineReport

EXIT_INVALID_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamsync",
        description="Stream rsync's file-difference discovery into parallel batched transfers.",
    )
    parser.add_argument("paths", nargs="+", metavar="PATH", help="SRC [SRC ...] DEST")
    parser.add_argument(
        "-s", "--syncers", dest="syncers_per_finder", type=int,
        help="syncer workers per source (default: 2)",
    )
    parser.add_argument(
        "-b", "--batch-size", dest="batch_size", type=int,
        help="maximum paths per rsync transfer (default: 1000)",
    )
    parser.add_argument(
        "-q", "--queue-size", dest="queue_size", type=int,
        help="queued paths per source before discovery is paused (default: batch size x 10)",
    )
    parser.add_argument(
        "-t", "--timeout", dest="batch_timeout_seconds", type=float,
        help="seconds to wait before sending a partial batch (default: 5)",
    )
    parser.add_argument("--rsync", dest="rsync_binary", help="rsync executable (default: rsync)")
    parser.add_argument(
        "--discovery-options",
        help="options for the discovery rsync, as one shell-quoted string",
    )
    parser.add_argument(
        "--transfer-options",
        help="options for the transfer rsyncs, as one shell-quoted string",
    )
    parser.add_argument(
        "--exit-scope", dest="worker_exit_scope", choices=["run", "source"],
        help="stop syncers when all sources are discovered (run) or their own source is (source)",
    )
    parser.add_argument("--log-level", dest="log_level")
    parser.add_argument("--log-file", dest="log_file_path")
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=None,
        help="echo rsync command lines and flow-control transitions",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Turn parsed arguments into Settings keyword arguments, skipping unset ones."""
    *sources, destination = args.paths
    overrides: Dict[str, Any] = {"sources": sources, "destination": destination}

    for name in (
        "syncers_per_finder",
        "batch_size",
        "queue_size",
        "batch_timeout_seconds",
        "rsync_binary",
        "worker_exit_scope",
        "log_level",
        "log_file_path",
        "verbose",
    ):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value

    if args.discovery_options is not None:
        overrides["discovery_options"] = shlex.split(args.discovery_options)
    if args.transfer_options is not None:
        overrides["transfer_options"] = shlex.split(args.transfer_options)

    return overrides


async def run_pipeline(settings: Settings) -> PipelineReport:
    orchestrator = get_orchestrator()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(
                signum, orchestrator.request_shutdown, f"received {signum.name}"
            )
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl-C raises instead
            logging.debug(f"Cannot install handler for {signum.name} on this platform")

    return await orchestrator.run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.paths) < 2:
        parser.error("at least one source and a destination are required")

    try:
        settings = configure_settings(Settings(**settings_overrides(args)))
    except ValidationError as e:
        print(f"streamsync: invalid configuration:\n{e}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    setup_logging(settings)

    config_info = settings.config_file_info
    logging.debug(f"Settings files: {', '.join(config_info['settings_files'])}")
    logging.debug(f"Running on hostname: {config_info['hostname']}")

    report = asyncio.run(run_pipeline(settings))
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
