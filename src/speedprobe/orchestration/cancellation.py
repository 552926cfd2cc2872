"""
Cancellation primitives for measurement tasks.

TaskKiller is the registry the pipeline driver hands to each task; killing
it runs every registered action once. TerminationAction is the single
idempotent cancellation action a measurement run registers both with the
killer and with its idle watchdog.
"""

import logging
import threading
from typing import Callable, List, Optional

from ..validation import IperfError

logger = logging.getLogger(__name__)

LOG_TAG = "StartIperfTask"

LogSink = Callable[[str, str, Optional[BaseException]], None]


class TaskKiller:
    """
    Registry of cancellation actions.

    Actions registered after kill() run immediately on the registering
    thread. Errors raised by actions are logged and never propagated.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._actions: List[Callable[[], None]] = []
        self._killed = False

    @property
    def is_killed(self) -> bool:
        with self._lock:
            return self._killed

    def register(self, action: Callable[[], None]) -> None:
        with self._lock:
            if not self._killed:
                self._actions.append(action)
                return
        logger.debug("Task already killed, running cancellation action immediately")
        self._run(action)

    def kill(self) -> None:
        """Run all registered actions. Subsequent calls are no-ops."""
        with self._lock:
            if self._killed:
                return
            self._killed = True
            actions, self._actions = self._actions, []

        logger.info(f"Kill requested, running {len(actions)} cancellation actions")
        for action in actions:
            self._run(action)

    @staticmethod
    def _run(action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as e:
            logger.error(f"Cancellation action failed: {e}", exc_info=True)


class TerminationAction:
    """
    Idempotent request to terminate a running iperf process.

    Only the first call reaches the runner; subprocess-level failures are
    reported to the log sink and swallowed since the run is ending anyway.
    """

    def __init__(self, runner, on_log: LogSink):
        self._runner = runner
        self._on_log = on_log
        self._lock = threading.Lock()
        self._invoked = False

    @property
    def invoked(self) -> bool:
        with self._lock:
            return self._invoked

    def __call__(self) -> None:
        with self._lock:
            if self._invoked:
                return
            self._invoked = True

        try:
            self._runner.request_termination()
        except IperfError as e:
            logger.warning(f"Could not stop iPerf: {e}")
            self._on_log(LOG_TAG, "Could not stop iPerf", e)
