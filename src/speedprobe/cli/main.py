"""
Command-line interface for running a single iperf measurement.

This module loads the configuration, runs StartIperfTask against the given
server on the main thread and prints a throughput summary. SIGINT and
SIGTERM cancel the run through the task's TaskKiller.
"""

import argparse
import dataclasses
import logging
import signal
import sys
import threading
import tomllib
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..models.endpoint import ServerAddr
from ..models.stats import RunningStats
from ..orchestration import StartIperfTask, TaskKiller
from ..parser import create_speed_parser, report_interval_from_args
from ..validation import (
    ConfigError,
    FatalStartupError,
    ValidationError,
    handle_cli_error,
    validate_iperf_user_args,
    validate_non_empty_string,
    validate_positive_integer,
)

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def _mbps(bits_per_second: Optional[float]) -> str:
    if bits_per_second is None:
        return "n/a"
    return f"{bits_per_second / 1_000_000:.2f} Mbit/s"


def format_summary(stats: RunningStats) -> str:
    """Render final statistics as a one-line summary."""
    return (
        f"samples={stats.count} min={_mbps(stats.min)} "
        f"max={_mbps(stats.max)} mean={_mbps(stats.mean if stats.count else None)}"
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a supervised iperf throughput measurement against a server."
    )
    parser.add_argument("-s", "--server", required=True, help="iperf server IP address or host name.")
    parser.add_argument("-p", "--port", default="5201", help="iperf server port (default: 5201).")
    parser.add_argument("--config", type=Path, help="Path to config.toml.")
    parser.add_argument(
        "--args",
        dest="user_args",
        help="Extra iperf arguments, overriding probe.user_args. Must not contain -c or -p.",
    )
    parser.add_argument(
        "--idle-timeout",
        dest="idle_timeout_millis",
        help="Idle window in milliseconds, overriding probe.idle_timeout_millis.",
    )
    return parser


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line entry point.

    Raises:
        SystemExit: 0 after a completed run, 1 on configuration or startup errors.
    """
    args = build_arg_parser().parse_args(argv)

    if args.config:
        set_config_path(args.config)

    try:
        app_config = get_config()
    except (FileNotFoundError, tomllib.TOMLDecodeError, ValidationError) as e:
        handle_cli_error(error=e, context="configuration loading", exit_code=1, logger=logger)

    logging.getLogger().setLevel(app_config.logging.level)

    try:
        server = validate_non_empty_string(args.server, field_name="--server")
        port = validate_positive_integer(args.port, min_value=1, max_value=65535, field_name="--port")
        overrides = {}
        if args.user_args is not None:
            overrides["user_args"] = validate_iperf_user_args(args.user_args, field_name="--args")
        if args.idle_timeout_millis is not None:
            overrides["idle_timeout_millis"] = validate_positive_integer(
                args.idle_timeout_millis, min_value=100, field_name="--idle-timeout"
            )
    except ValidationError as e:
        handle_cli_error(error=e, context="argument validation", exit_code=1, logger=logger)

    probe_config = dataclasses.replace(app_config.probe, **overrides)
    endpoint = ServerAddr(ip=server, port_iperf=port)
    killer = TaskKiller()

    def global_signal_handler(signum, frame):
        logger.info(f"Signal {signal.strsignal(signum)} received. Stopping measurement...")
        killer.kill()

    signal.signal(signal.SIGINT, global_signal_handler)
    signal.signal(signal.SIGTERM, global_signal_handler)

    final_stats: List[RunningStats] = []
    finished = threading.Event()

    def on_finish(stats: RunningStats) -> None:
        final_stats.append(stats)
        finished.set()

    def on_speed_update(stats: RunningStats, speed: int) -> None:
        logger.info(f"{_mbps(speed)} (samples={stats.count}, mean={_mbps(stats.mean)})")

    task = StartIperfTask(
        config=probe_config,
        speed_parser=create_speed_parser(
            probe_config.parser, report_interval=report_interval_from_args(probe_config.user_args)
        ),
        on_start=lambda: logger.info(f"Starting iPerf measurement against {endpoint}"),
        on_speed_update=on_speed_update,
        on_finish=on_finish,
    )

    try:
        task.prepare(endpoint, killer)
    except (ConfigError, FatalStartupError) as e:
        handle_cli_error(error=e, context="measurement startup", exit_code=1, logger=logger)

    # The idle watchdog may return before iperf's exit has been processed
    finished.wait(timeout=probe_config.termination_timeout + 1.0)

    if final_stats:
        logger.info(f"Measurement finished: {format_summary(final_stats[0])}")
    else:
        logger.warning("Measurement ended without a completion report")
    sys.exit(0)


if __name__ == "__main__":
    main_cli()
