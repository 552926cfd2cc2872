"""
Idle-output watchdog.
"""

from .idle import IdleWatchdog, WatchdogState

__all__ = [
    "IdleWatchdog",
    "WatchdogState",
]
