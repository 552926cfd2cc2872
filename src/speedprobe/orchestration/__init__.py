"""
Orchestration of iperf measurement runs.

Components:
- StartIperfTask: pipeline task driving one supervised iperf run
- IperfOutputProcessor: per-run output consumer owning the statistics
- TaskKiller / TerminationAction: cancellation registry and action
- RunHandle: resolvable handoff to the next pipeline stage
"""

from .cancellation import TaskKiller, TerminationAction
from .handle import RunHandle, TaskFailedError
from .observers import default_log_sink
from .output_processor import IperfOutputProcessor
from .start_iperf_task import StartIperfTask

__all__ = [
    "IperfOutputProcessor",
    "RunHandle",
    "StartIperfTask",
    "TaskFailedError",
    "TaskKiller",
    "TerminationAction",
    "default_log_sink",
]
