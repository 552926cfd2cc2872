"""
Per-run consumer of iperf output.

IperfOutputProcessor turns the stdout/stderr line streams and the exit
signal of one iperf run into observer notifications. It owns the running
statistics and the one-shot "started" edge of the run.
"""

import logging
import threading
from typing import Callable, Optional

from ..models.stats import RunningStats
from ..parser import SpeedParser
from ..validation import SpeedParseError
from ..watchdog import IdleWatchdog

logger = logging.getLogger(__name__)

STDOUT_TAG = "iPerf stdout"
STDERR_TAG = "iPerf stderr"
PARSER_TAG = "Speed parser"
OBSERVER_TAG = "Observer"

LogSink = Callable[[str, str, Optional[BaseException]], None]
SpeedUpdateObserver = Callable[[RunningStats, int], None]
FinishObserver = Callable[[RunningStats], None]


class IperfOutputProcessor:
    """
    Stateful handler for the line callbacks of a single iperf run.

    Stdout and stderr callbacks may arrive on different threads. Statistics
    updates and the speed/finish observers are serialised by one lock, so
    observers must not block. Logging and idle signalling happen outside it.
    Observer errors go to the log sink and never skip the started or
    run-finished edges.
    """

    def __init__(
        self,
        idle_watchdog: IdleWatchdog,
        speed_parser: SpeedParser,
        on_speed_update: SpeedUpdateObserver,
        on_finish: FinishObserver,
        on_log: LogSink,
        on_started: Callable[[], None],
        on_run_finished: Callable[[], None],
    ):
        self._idle_watchdog = idle_watchdog
        self._speed_parser = speed_parser
        self._on_speed_update = on_speed_update
        self._on_finish = on_finish
        self._on_log = on_log
        self._on_started = on_started
        self._on_run_finished = on_run_finished

        self._lock = threading.Lock()
        self._stats = RunningStats()
        self._started = False

    @property
    def stats(self) -> RunningStats:
        with self._lock:
            return self._stats.copy()

    @property
    def started(self) -> bool:
        with self._lock:
            return self._started

    def on_iperf_stdout_line(self, line: str) -> None:
        self._on_log(STDOUT_TAG, line, None)
        self._idle_watchdog.update_activity()
        try:
            speed = self._speed_parser.parse_speed(line)
        except SpeedParseError as e:
            self._on_log(PARSER_TAG, f"Invalid stdout format: {line}", e)
            return

        with self._lock:
            self._stats.accept(speed)
            try:
                self._on_speed_update(self._stats.copy(), speed)
            except Exception as e:
                logger.error(f"Speed update observer failed: {e}", exc_info=True)
                self._on_log(OBSERVER_TAG, "Speed update observer failed", e)
            if not self._started:
                self._started = True
                logger.info(f"First throughput sample received: {speed} bps")
                self._on_started()

    def on_iperf_stderr_line(self, line: str) -> None:
        self._on_log(STDERR_TAG, line, None)
        self._idle_watchdog.update_activity()

    def on_iperf_finish(self) -> None:
        try:
            with self._lock:
                final_stats = self._stats.copy()
                try:
                    self._on_finish(final_stats)
                except Exception as e:
                    logger.error(f"Finish observer failed: {e}", exc_info=True)
                    self._on_log(OBSERVER_TAG, "Finish observer failed", e)
            logger.info(f"iPerf run finished with {final_stats.count} samples")
        finally:
            self._on_run_finished()
