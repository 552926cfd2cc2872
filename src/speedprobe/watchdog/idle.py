"""
Idle watchdog for long-running measurement subprocesses.

The watchdog blocks the thread that arms it and invokes a cancellation
action once no activity has been signalled for a full idle window. Any
activity signal restarts the window.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

LOG_TAG = "IdleWatchdog"

LogSink = Callable[[str, str, Optional[BaseException]], None]


class WatchdogState(Enum):
    """Lifecycle of an IdleWatchdog."""
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"
    DISARMED = "disarmed"


class IdleWatchdog:
    """
    Rearmable idle timer that fires a registered action at most once.

    State machine: IDLE -> ARMED -> (FIRED | DISARMED). A watchdog disarmed
    while still IDLE never arms; the next register_blocking returns at once.
    """

    def __init__(
        self,
        on_log: Optional[LogSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            on_log: Sink for errors raised by the fired action
            clock: Monotonic clock in seconds, replaceable in tests
        """
        self._on_log = on_log
        self._clock = clock
        self._cond = threading.Condition()
        self._state = WatchdogState.IDLE
        self._window: float = 0.0
        self._last_activity: float = clock()
        self._action: Optional[Callable[[], None]] = None

    @property
    def state(self) -> WatchdogState:
        with self._cond:
            return self._state

    @property
    def last_activity(self) -> float:
        with self._cond:
            return self._last_activity

    def update_activity(self) -> None:
        """Record now as the latest activity instant."""
        now = self._clock()
        with self._cond:
            self._last_activity = now

    def register_blocking(self, window_millis: int, action: Callable[[], None]) -> bool:
        """
        Arm the watchdog and block until it fires or is disarmed.

        Args:
            window_millis: Idle window in milliseconds
            action: Cancellation action invoked when the window elapses

        Returns:
            True if the watchdog fired, False if it was disarmed

        Raises:
            ValueError: If the window is not positive
            RuntimeError: If the watchdog is already armed or has fired
        """
        if window_millis <= 0:
            raise ValueError(f"Idle window must be positive, got {window_millis}ms")

        with self._cond:
            if self._state is WatchdogState.DISARMED:
                logger.debug("Watchdog disarmed before arming, not waiting")
                return False
            if self._state is not WatchdogState.IDLE:
                raise RuntimeError(f"Watchdog cannot be armed in state {self._state.value}")

            self._state = WatchdogState.ARMED
            self._window = window_millis / 1000.0
            self._action = action
            self._last_activity = self._clock()
            logger.debug(f"Watchdog armed with {window_millis}ms idle window")

            while self._state is WatchdogState.ARMED:
                remaining = self._last_activity + self._window - self._clock()
                if remaining <= 0:
                    self._state = WatchdogState.FIRED
                    break
                self._cond.wait(timeout=remaining)

            if self._state is WatchdogState.DISARMED:
                return False

        logger.warning(f"No activity for {window_millis}ms, invoking cancellation action")
        self._invoke_action(action)
        return True

    def disarm(self) -> None:
        """Stop waiting without firing. No effect once fired or disarmed."""
        with self._cond:
            if self._state in (WatchdogState.IDLE, WatchdogState.ARMED):
                self._state = WatchdogState.DISARMED
                self._cond.notify_all()

    def _invoke_action(self, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as e:
            logger.error(f"Idle cancellation action failed: {e}", exc_info=True)
            if self._on_log is not None:
                self._on_log(LOG_TAG, "Idle cancellation action failed", e)
