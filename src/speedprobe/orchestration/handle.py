"""
Resolvable handle passed from a measurement task to the next pipeline stage.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional, Tuple

from ..models.endpoint import ServerAddr

logger = logging.getLogger(__name__)


class TaskFailedError(Exception):
    """Raised by RunHandle.result() when the task was rejected."""

    def __init__(self, message: str, error: Optional[BaseException] = None):
        super().__init__(message)
        self.error = error


class RunHandle:
    """
    One-shot outcome of a measurement task.

    Resolves with the ServerAddr once measurement data is flowing, or is
    rejected with a ``(message, error)`` pair. The first outcome wins; later
    resolve/reject calls are ignored.
    """

    def __init__(self):
        self._future: "Future[ServerAddr]" = Future()
        self._lock = threading.RLock()
        self._failure: Optional[Tuple[str, Optional[BaseException]]] = None

    def resolve(self, endpoint: ServerAddr) -> bool:
        """Returns True if this call settled the handle."""
        with self._lock:
            if self._future.done():
                return False
            self._future.set_result(endpoint)
        logger.debug(f"Run handle resolved with {endpoint}")
        return True

    def reject(self, message: str, error: Optional[BaseException] = None) -> bool:
        """Returns True if this call settled the handle."""
        with self._lock:
            if self._future.done():
                return False
            self._failure = (message, error)
            self._future.set_exception(TaskFailedError(message, error))
        logger.debug(f"Run handle rejected: {message}")
        return True

    def done(self) -> bool:
        return self._future.done()

    @property
    def failure(self) -> Optional[Tuple[str, Optional[BaseException]]]:
        """The ``(message, error)`` pair of a rejected handle, else None."""
        with self._lock:
            return self._failure

    def result(self, timeout: Optional[float] = None) -> ServerAddr:
        """
        Block until settled and return the endpoint.

        Raises:
            TaskFailedError: If the handle was rejected
            concurrent.futures.TimeoutError: If not settled within timeout
        """
        return self._future.result(timeout=timeout)

    def add_done_callback(self, callback: Callable[["RunHandle"], None]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))
