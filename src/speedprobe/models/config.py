"""
Configuration data models.

This module contains the configuration structures for the measurement task
and the application as a whole, loaded from `config.toml`.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ProbeConfig:
    """
    Configuration for one iperf measurement task, the `[probe]` section.
    """

    # Working directory handed to the iperf subprocess
    writable_dir: Path = field(default_factory=lambda: Path("."))
    iperf_executable: str = "iperf3"
    # Extra iperf arguments; must not contain -c or -p
    user_args: str = ""
    idle_timeout_millis: int = 10_000
    max_start_attempts: int = 5
    termination_timeout: float = 2.0
    parser: str = "text"  # "text" or "json_stream"


@dataclass
class LoggingConfig:
    """The `[logging]` section."""

    level: str = "INFO"


@dataclass
class AppConfig:
    """
    Top-level container for all application configuration.
    """

    probe: ProbeConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
