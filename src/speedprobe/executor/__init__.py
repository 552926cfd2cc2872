"""
Measurement subprocess execution for the speedprobe package.

This module spawns the iperf client, streams its output line by line and
terminates its process tree on request.
"""

from .iperf_runner import IperfRunner, compose_iperf_args

__all__ = [
    "IperfRunner",
    "compose_iperf_args",
]
