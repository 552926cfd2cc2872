"""
Default observer callbacks for measurement tasks.
"""

import logging
from typing import Optional

from ..models.stats import RunningStats

logger = logging.getLogger(__name__)


def default_log_sink(tag: str, message: str, error: Optional[BaseException] = None) -> None:
    """Route task diagnostics to the logging system."""
    if error is None:
        logger.debug(f"[{tag}] {message}")
    else:
        logger.warning(f"[{tag}] {message}: {error}")


def noop_start() -> None:
    pass


def noop_speed_update(stats: RunningStats, speed: int) -> None:
    pass


def noop_finish(stats: RunningStats) -> None:
    pass
