"""
Data models for the measurement task.

Configuration Models:
- Probe settings and logging settings loaded from TOML

Runtime Models:
- The server endpoint a measurement runs against
- Running throughput statistics delivered to observers
"""

from .config import AppConfig, LoggingConfig, ProbeConfig
from .endpoint import ServerAddr
from .stats import RunningStats

__all__ = [
    "AppConfig",
    "LoggingConfig",
    "ProbeConfig",
    "ServerAddr",
    "RunningStats",
]
