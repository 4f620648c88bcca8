"""
Score history and trend analysis.

HistoryTracker keeps a fixed-capacity sliding window of quality scores.
TrendAnalyzer derives direction, rate and confidence of quality change
from that window, recomputing from scratch on every call.
"""

import logging
import numbers
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

import numpy as np

from callquality.core.exceptions import ConfigurationError
from callquality.core.sample import clamp
from callquality.quality.scoring import CallQualityScore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 10

# Known samples needed before window size stops limiting confidence
FULL_CONFIDENCE_SAMPLES = 10

# Residual spread (score points) that halves the fit tightness
SCATTER_SCALE = 5.0


class TrendDirection(Enum):
    """Direction of quality change."""
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


@dataclass(frozen=True)
class QualityTrend:
    """Quality trend over the history window."""
    direction: TrendDirection
    rate: float  # -100 to 100, negative = degrading
    confidence: float  # 0-1
    sample_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "rate": self.rate,
            "confidence": self.confidence,
            "sample_count": self.sample_count,
        }


class HistoryTracker:
    """Ring buffer of recent quality scores, oldest evicted first."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._entries: Deque[CallQualityScore] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def push(self, score: CallQualityScore) -> None:
        self._entries.append(score)

    def entries(self) -> List[CallQualityScore]:
        """Scores in the window, oldest first."""
        return list(self._entries)

    def latest(self) -> Optional[CallQualityScore]:
        if self._entries:
            return self._entries[-1]
        return None

    def resize(self, capacity: int) -> None:
        """Change capacity, keeping the newest entries."""
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        if capacity == self.capacity:
            return
        self._entries = deque(self._entries, maxlen=capacity)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class TrendAnalyzer:
    """Fits a linear trend to the overall scores in a history window."""

    def __init__(self, epsilon: float = 0.5):
        """
        Initialize trend analyzer.

        Args:
            epsilon: Slope (score points per sample) below which the trend is stable

        Raises:
            ConfigurationError: If epsilon is negative or non-numeric
        """
        if isinstance(epsilon, bool) or not isinstance(epsilon, numbers.Real) or not epsilon >= 0:
            raise ConfigurationError(
                f"trend_epsilon must be a non-negative number, got {epsilon!r}",
                field="history.trend_epsilon",
            )
        self._epsilon = epsilon

    def analyze(self, entries: List[CallQualityScore]) -> Optional[QualityTrend]:
        """
        Calculate trend from a history window.

        Unknown scores are skipped. With fewer than two known scores there
        is no trend.

        Args:
            entries: Scores, oldest first

        Returns:
            Trend, or None if there is not enough history
        """
        values = [entry.overall for entry in entries if entry.overall is not None]
        n = len(values)
        if n < 2:
            return None

        x = np.arange(n, dtype=float)
        y = np.asarray(values, dtype=float)
        slope, intercept = np.polyfit(x, y, 1)

        residuals = y - (slope * x + intercept)
        rmse = float(np.sqrt(np.mean(residuals ** 2)))
        tightness = 1.0 / (1.0 + rmse / SCATTER_SCALE)

        size_factor = min(1.0, (n - 1) / (FULL_CONFIDENCE_SAMPLES - 1))

        slope = float(slope)
        if slope > self._epsilon:
            direction = TrendDirection.IMPROVING
        elif slope < -self._epsilon:
            direction = TrendDirection.DEGRADING
        else:
            direction = TrendDirection.STABLE

        trend = QualityTrend(
            direction=direction,
            rate=round(clamp(slope, -100.0, 100.0), 3),
            confidence=round(clamp(size_factor * tightness, 0.0, 1.0), 3),
            sample_count=n,
        )
        logger.debug(
            f"Quality trend: {direction.value} rate={trend.rate} confidence={trend.confidence}"
        )
        return trend
