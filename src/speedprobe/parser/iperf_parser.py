"""
Throughput parsers for iperf output lines.

Each parser turns a single stdout line into a bits-per-second sample or
raises SpeedParseError. Parsers are stateless and safe to share between
threads.
"""

import json
import logging
import re
import shlex
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..validation import SpeedParseError

logger = logging.getLogger(__name__)

# iperf reports bit rates with decimal prefixes
_RATE_MULTIPLIERS: Dict[str, int] = {
    "": 1,
    "K": 1_000,
    "M": 1_000_000,
    "G": 1_000_000_000,
    "T": 1_000_000_000_000,
}

# iperf3 reports every second unless -i says otherwise
DEFAULT_REPORT_INTERVAL = 1.0

_INTERVAL_FLAG_RE = re.compile(r"^(?:-i|--interval=?)(?P<value>.*)$")


class SpeedParser(ABC):
    """Base class for line-level throughput parsers."""

    @abstractmethod
    def parse_speed(self, line: str) -> int:
        """
        Extract a bits-per-second sample from one output line.

        Raises:
            SpeedParseError: If the line carries no throughput sample
        """


class IperfTextParser(SpeedParser):
    """
    Parser for the human-readable interval lines of iperf2 and iperf3.

    Matches lines such as::

        [  5]   0.00-1.00   sec   112 MBytes   941 Mbits/sec    0    379 KBytes

    Final summary lines are rejected unless ``include_summary`` is set, so
    only periodic samples reach the statistics. iperf3 tags them
    ``sender``/``receiver``; iperf2 prints them untagged, as an interval
    starting at 0.0 that spans more than one report interval::

        [  3]  0.0-10.0 sec  1.10 GBytes   941 Mbits/sec

    ``report_interval`` is the ``-i`` value the client runs with.
    """

    INTERVAL_RE = re.compile(
        r"\bsec\s+.*?(?P<value>\d+(?:[.,]\d+)?)\s*(?P<unit>[KMGT]?)bits/sec\b",
        re.IGNORECASE,
    )
    SUMMARY_RE = re.compile(r"\b(sender|receiver)\s*$", re.IGNORECASE)
    BOUNDS_RE = re.compile(r"(?P<start>\d+(?:\.\d+)?)\s*-\s*(?P<end>\d+(?:\.\d+)?)\s*sec\b")

    # Slack for iperf stretching a report slightly past its nominal length
    INTERVAL_SLACK = 1.5

    def __init__(self, include_summary: bool = False, report_interval: float = DEFAULT_REPORT_INTERVAL):
        if report_interval <= 0:
            raise ValueError(f"Report interval must be positive, got {report_interval}")
        self.include_summary = include_summary
        self.report_interval = report_interval

    def parse_speed(self, line: str) -> int:
        match = self.INTERVAL_RE.search(line)
        if not match:
            raise SpeedParseError(f"No bit rate found in line: {line!r}", line=line)
        if not self.include_summary and self._is_summary(line):
            raise SpeedParseError(f"Summary line skipped: {line!r}", line=line)

        value = float(match.group("value").replace(",", "."))
        unit = match.group("unit").upper()
        return int(round(value * _RATE_MULTIPLIERS[unit]))

    def _is_summary(self, line: str) -> bool:
        if self.SUMMARY_RE.search(line):
            return True
        bounds = self.BOUNDS_RE.search(line)
        if not bounds:
            return False
        start, end = float(bounds.group("start")), float(bounds.group("end"))
        return start == 0.0 and end - start > self.report_interval * self.INTERVAL_SLACK


class IperfJsonStreamParser(SpeedParser):
    """
    Parser for iperf3 ``--json-stream`` output.

    Every line is a JSON object with an ``event`` key; only ``interval``
    events carry a sample, taken from ``data.sum.bits_per_second``.
    """

    def parse_speed(self, line: str) -> int:
        try:
            message = json.loads(line)
        except ValueError as e:
            raise SpeedParseError(f"Line is not JSON: {e}", line=line) from e

        if not isinstance(message, dict) or message.get("event") != "interval":
            raise SpeedParseError("Not an interval event", line=line)

        bits_per_second = self._interval_bits_per_second(message.get("data"))
        if bits_per_second is None:
            raise SpeedParseError("Interval event without bits_per_second", line=line)
        if bits_per_second < 0:
            raise SpeedParseError(f"Negative bit rate {bits_per_second}", line=line)
        return int(round(bits_per_second))

    @staticmethod
    def _interval_bits_per_second(data) -> Optional[float]:
        if not isinstance(data, dict):
            return None
        sums = data.get("sum") or data.get("sum_received") or data.get("sum_sent")
        if not isinstance(sums, dict):
            return None
        bps = sums.get("bits_per_second")
        if isinstance(bps, bool) or not isinstance(bps, (int, float)):
            return None
        return float(bps)


_PARSERS = {
    "text": IperfTextParser,
    "json_stream": IperfJsonStreamParser,
}


def report_interval_from_args(user_args: str) -> float:
    """
    Read the report interval from an iperf argument string.

    Accepts ``-i N``, ``-iN``, ``--interval N`` and ``--interval=N``; the
    last occurrence wins. Falls back to DEFAULT_REPORT_INTERVAL when the flag
    is absent or its value is not a positive number.
    """
    try:
        tokens = shlex.split(user_args or "")
    except ValueError:
        return DEFAULT_REPORT_INTERVAL

    interval = DEFAULT_REPORT_INTERVAL
    for index, token in enumerate(tokens):
        match = _INTERVAL_FLAG_RE.match(token)
        if not match:
            continue
        value = match.group("value")
        if not value and index + 1 < len(tokens):
            value = tokens[index + 1]
        try:
            parsed = float(value)
        except ValueError:
            logger.warning(f"Ignoring unreadable iPerf report interval '{value}'")
            continue
        if parsed > 0:
            interval = parsed
    return interval


def create_speed_parser(name: str, report_interval: float = DEFAULT_REPORT_INTERVAL) -> SpeedParser:
    """
    Create a parser by its configuration name.

    Args:
        name: ``"text"`` or ``"json_stream"``
        report_interval: iperf ``-i`` value, used by the text parser to tell
            iperf2 summaries from periodic samples

    Raises:
        ValueError: If the name is unknown
    """
    try:
        parser_cls = _PARSERS[name]
    except KeyError:
        raise ValueError(f"Unknown speed parser '{name}', expected one of {sorted(_PARSERS)}")
    logger.debug(f"Using speed parser {parser_cls.__name__}")
    if parser_cls is IperfTextParser:
        return IperfTextParser(report_interval=report_interval)
    return parser_cls()
