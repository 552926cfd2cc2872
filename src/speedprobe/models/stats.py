"""
Running throughput statistics.

RunningStats keeps count, sum, min and max over accepted samples, enough to
derive the mean on demand without storing the samples themselves.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class RunningStats:
    """
    Summary statistics over bits-per-second samples.

    Instances are not thread-safe; the owner serialises ``accept`` calls and
    hands observers a ``copy()``.
    """

    count: int = 0
    sum: int = 0
    min: Optional[int] = None
    max: Optional[int] = None

    def accept(self, sample: int) -> None:
        """Fold one sample into the statistics."""
        if sample < 0:
            raise ValueError(f"Sample must be non-negative, got {sample}")
        self.count += 1
        self.sum += sample
        self.min = sample if self.min is None else min(self.min, sample)
        self.max = sample if self.max is None else max(self.max, sample)

    @property
    def mean(self) -> float:
        """Arithmetic mean, 0.0 when no samples were accepted."""
        if self.count == 0:
            return 0.0
        return self.sum / self.count

    def copy(self) -> "RunningStats":
        return RunningStats(count=self.count, sum=self.sum, min=self.min, max=self.max)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "sum": self.sum,
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
        }
