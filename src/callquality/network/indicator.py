"""
Network quality indicator for callquality.

Classifies connection metrics into a display level with signal bars,
color, icon and accessibility label. Classification never raises: with no
usable metric the level is unknown.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from callquality.core.config import (
    DEFAULT_NETWORK_COLORS,
    DEFAULT_NETWORK_THRESHOLDS,
    Thresholds,
)
from callquality.core.sample import NetworkQualityInput, as_metric, clamp

logger = logging.getLogger(__name__)


class NetworkQualityLevel(Enum):
    """Network quality level classification."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


# Best to worst; index is severity
SEVERITY_ORDER = [
    NetworkQualityLevel.EXCELLENT,
    NetworkQualityLevel.GOOD,
    NetworkQualityLevel.FAIR,
    NetworkQualityLevel.POOR,
    NetworkQualityLevel.CRITICAL,
]

LEVEL_TO_BARS = {
    NetworkQualityLevel.EXCELLENT: 5,
    NetworkQualityLevel.GOOD: 4,
    NetworkQualityLevel.FAIR: 3,
    NetworkQualityLevel.POOR: 2,
    NetworkQualityLevel.CRITICAL: 1,
    NetworkQualityLevel.UNKNOWN: 0,
}

LEVEL_TO_ARIA = {
    NetworkQualityLevel.EXCELLENT: "Network quality: excellent connection",
    NetworkQualityLevel.GOOD: "Network quality: good connection",
    NetworkQualityLevel.FAIR: "Network quality: fair connection",
    NetworkQualityLevel.POOR: "Network quality: poor connection",
    NetworkQualityLevel.CRITICAL: "Network quality: critical - connection issues",
    NetworkQualityLevel.UNKNOWN: "Network quality: unavailable - no data",
}

# Available bandwidth is roughly 1.2x current usage when not reported
BANDWIDTH_ESTIMATE_FACTOR = 1.2


def metric_level(value: float, thresholds: Thresholds) -> NetworkQualityLevel:
    """Bucket a lower-is-better value; above the poor boundary is critical."""
    value = max(0.0, value)
    for threshold, level in zip(thresholds, SEVERITY_ORDER):
        if value <= threshold:
            return level
    return NetworkQualityLevel.CRITICAL


def worst_level(levels: List[NetworkQualityLevel]) -> NetworkQualityLevel:
    """Most severe of the given levels, unknown if there are none."""
    known = [level for level in levels if level != NetworkQualityLevel.UNKNOWN]
    if not known:
        return NetworkQualityLevel.UNKNOWN
    return max(known, key=SEVERITY_ORDER.index)


@dataclass(frozen=True)
class NetworkDetails:
    """Detailed metrics for tooltip display. None means not reported."""
    rtt: Optional[float] = None
    jitter: Optional[float] = None
    packet_loss: Optional[float] = None
    bandwidth: Optional[float] = None  # kbps
    connection_type: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rtt": self.rtt,
            "jitter": self.jitter,
            "packet_loss": self.packet_loss,
            "bandwidth": self.bandwidth,
            "connection_type": self.connection_type,
        }


@dataclass(frozen=True)
class NetworkQualityIndicatorData:
    """Display-ready network quality indicator."""
    level: NetworkQualityLevel
    bars: int  # 0-5
    color: str
    icon: str
    aria_label: str
    details: NetworkDetails

    @property
    def is_available(self) -> bool:
        return self.level != NetworkQualityLevel.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "bars": self.bars,
            "color": self.color,
            "icon": self.icon,
            "aria_label": self.aria_label,
            "details": self.details.to_dict(),
        }


class NetworkQualityClassifier:
    """Worst-of-metrics network quality classification."""

    def __init__(
        self,
        thresholds: Optional[Dict[str, Thresholds]] = None,
        colors: Optional[Dict[str, str]] = None,
        estimate_bandwidth: bool = True,
    ):
        """
        Initialize network quality classifier.

        Args:
            thresholds: [excellent, good, fair, poor] boundaries for rtt, jitter and packet_loss
            colors: Color per level name
            estimate_bandwidth: Estimate bandwidth from bitrate when not reported
        """
        self._thresholds = {**DEFAULT_NETWORK_THRESHOLDS, **(thresholds or {})}
        self._colors = {**DEFAULT_NETWORK_COLORS, **(colors or {})}
        self._estimate_bandwidth = estimate_bandwidth

    def classify(self, stats: Optional[NetworkQualityInput]) -> NetworkQualityIndicatorData:
        """
        Classify network metrics.

        Args:
            stats: Network metrics, any of which may be missing

        Returns:
            Indicator data, always complete
        """
        stats = stats or NetworkQualityInput()

        rtt = self._non_negative(stats.rtt)
        jitter = self._non_negative(stats.jitter)
        packet_loss = as_metric(stats.packet_loss)
        if packet_loss is not None:
            packet_loss = clamp(packet_loss, 0.0, 100.0)

        levels = []
        if rtt is not None:
            levels.append(metric_level(rtt, self._thresholds["rtt"]))
        if jitter is not None:
            levels.append(metric_level(jitter, self._thresholds["jitter"]))
        if packet_loss is not None:
            levels.append(metric_level(packet_loss, self._thresholds["packet_loss"]))

        level = worst_level(levels)

        details = NetworkDetails(
            rtt=rtt,
            jitter=jitter,
            packet_loss=packet_loss,
            bandwidth=self._bandwidth(stats),
            connection_type=stats.connection_type if isinstance(stats.connection_type, str) else "unknown",
        )

        return NetworkQualityIndicatorData(
            level=level,
            bars=LEVEL_TO_BARS[level],
            color=self._colors[level.value],
            icon=f"signal-{level.value}",
            aria_label=LEVEL_TO_ARIA[level],
            details=details,
        )

    def _bandwidth(self, stats: NetworkQualityInput) -> Optional[float]:
        available = self._non_negative(stats.available_bitrate)
        if available is not None:
            return available
        bitrate = self._non_negative(stats.bitrate)
        if self._estimate_bandwidth and bitrate is not None:
            return float(round(bitrate * BANDWIDTH_ESTIMATE_FACTOR))
        return None

    @staticmethod
    def _non_negative(raw) -> Optional[float]:
        value = as_metric(raw)
        if value is None:
            return None
        return max(0.0, value)
