"""
Line-level throughput parsers for iperf output.
"""

from .iperf_parser import (
    IperfJsonStreamParser,
    IperfTextParser,
    SpeedParser,
    create_speed_parser,
    report_interval_from_args,
)

__all__ = [
    "IperfJsonStreamParser",
    "IperfTextParser",
    "SpeedParser",
    "create_speed_parser",
    "report_interval_from_args",
]
