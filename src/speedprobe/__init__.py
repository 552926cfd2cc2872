"""
SpeedProbe: supervised iperf throughput measurements.

This package runs an iperf client as one stage of a speedtest pipeline,
parses its output in real time into running throughput statistics and
keeps the run under an idle-output watchdog and external cancellation.

The package is organized into specialized modules:
- config: Configuration loading and validation
- models: Endpoint, statistics and configuration data structures
- validation: Error taxonomy, error handling and input validation
- parser: Line-level throughput parsers for iperf output
- watchdog: Idle-output watchdog
- executor: iperf subprocess runner
- orchestration: The measurement task, output processing and cancellation
- cli: Command-line interface

Usage:
    From command line:
        speedprobe --server 10.0.0.2 --port 5201

    Programmatically:
        from speedprobe import StartIperfTask, TaskKiller, ServerAddr, get_config
        task = StartIperfTask(get_config().probe, IperfTextParser(), ...)
        handle = task.prepare(ServerAddr("10.0.0.2", 5201), TaskKiller())
"""

from .config import get_config, clear_config_cache, set_config_path

from .models import AppConfig, ProbeConfig, RunningStats, ServerAddr

from .orchestration import (
    IperfOutputProcessor,
    RunHandle,
    StartIperfTask,
    TaskFailedError,
    TaskKiller,
    TerminationAction,
)

from .executor import IperfRunner, compose_iperf_args
from .parser import IperfJsonStreamParser, IperfTextParser, SpeedParser, create_speed_parser
from .watchdog import IdleWatchdog

from .validation import (
    ConfigError,
    FatalStartupError,
    IperfError,
    IperfTerminationError,
    SpeedParseError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "get_config",
    "clear_config_cache",
    "set_config_path",
    # Models
    "AppConfig",
    "ProbeConfig",
    "RunningStats",
    "ServerAddr",
    # Orchestration
    "IperfOutputProcessor",
    "RunHandle",
    "StartIperfTask",
    "TaskFailedError",
    "TaskKiller",
    "TerminationAction",
    # Execution and parsing
    "IperfRunner",
    "compose_iperf_args",
    "IperfJsonStreamParser",
    "IperfTextParser",
    "SpeedParser",
    "create_speed_parser",
    "IdleWatchdog",
    # Errors
    "ConfigError",
    "FatalStartupError",
    "IperfError",
    "IperfTerminationError",
    "SpeedParseError",
    "ValidationError",
]
