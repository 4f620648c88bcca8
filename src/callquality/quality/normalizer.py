"""
Metric normalization for call quality scoring.

Maps each raw transport metric onto an independent 0-100 sub-score.
Metrics absent from the input produce no sub-score at all.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from callquality.core.config import DEFAULT_SCORE_THRESHOLDS, Thresholds
from callquality.core.sample import QualityScoreInput, as_metric, clamp

logger = logging.getLogger(__name__)

# Sub-score reached at each band boundary [excellent, good, fair, poor]
BAND_SCORES = (100.0, 85.0, 60.0, 0.0)

DEFAULT_TARGET_FRAMERATE = 30.0

# (minimum pixel count, score), highest first
RESOLUTION_SCORES = [
    (2_000_000, 100.0),  # 1080p+
    (900_000, 90.0),  # 720p
    (400_000, 75.0),  # 480p
    (200_000, 60.0),  # 360p
    (100_000, 45.0),  # 240p
]

FREEZE_PENALTY = 15.0


def band_score(value: float, thresholds: Sequence[float]) -> float:
    """
    Score a lower-is-better metric against ascending band boundaries.

    Values at or below the excellent boundary score 100, values at or beyond
    the poor boundary score 0, and values inside a band are interpolated
    linearly between that band's boundary scores.
    """
    value = max(0.0, value)
    if value <= thresholds[0]:
        return BAND_SCORES[0]

    for i in range(1, len(thresholds)):
        if value <= thresholds[i]:
            low, high = thresholds[i - 1], thresholds[i]
            ratio = (value - low) / (high - low)
            return BAND_SCORES[i - 1] - ratio * (BAND_SCORES[i - 1] - BAND_SCORES[i])

    return BAND_SCORES[-1]


def mos_score(mos: float) -> float:
    """Map MOS 1.0-5.0 onto 0-100."""
    return (clamp(mos, 1.0, 5.0) - 1.0) / 4.0 * 100.0


def bitrate_stability_score(
    bitrate: float,
    previous_bitrate: Optional[float],
    sensitivity: float = 1.0,
) -> float:
    """Score relative bitrate change since the previous sample."""
    if previous_bitrate is None or previous_bitrate <= 0:
        # First sample, nothing to compare against
        return 100.0

    change = abs(max(0.0, bitrate) - previous_bitrate) / previous_bitrate * 100.0 * sensitivity
    return 100.0 - min(100.0, change)


def framerate_score(framerate: float, target_framerate: Optional[float] = None) -> float:
    target = target_framerate if target_framerate and target_framerate > 0 else DEFAULT_TARGET_FRAMERATE
    return clamp(max(0.0, framerate) / target * 100.0, 0.0, 100.0)


def resolution_score(width: float, height: float) -> float:
    pixels = max(0.0, width) * max(0.0, height)
    for min_pixels, score in RESOLUTION_SCORES:
        if pixels >= min_pixels:
            return score
    # Below 240p scales down towards a floor of 20
    return max(20.0, pixels / RESOLUTION_SCORES[-1][0] * RESOLUTION_SCORES[-1][1])


def freeze_score(events: float) -> float:
    return max(0.0, 100.0 - max(0.0, events) * FREEZE_PENALTY)


@dataclass(frozen=True)
class MetricScores:
    """Per-metric sub-scores. None means the metric was not present."""
    packet_loss: Optional[float] = None
    jitter: Optional[float] = None
    rtt: Optional[float] = None
    mos: Optional[float] = None
    bitrate_stability: Optional[float] = None

    # Audio stream variants
    audio_packet_loss: Optional[float] = None
    audio_jitter: Optional[float] = None

    # Video stream
    video_packet_loss: Optional[float] = None
    framerate: Optional[float] = None
    resolution: Optional[float] = None
    freeze: Optional[float] = None

    def has_any(self) -> bool:
        return any(value is not None for value in self.to_dict().values())

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {
            "packet_loss": self.packet_loss,
            "jitter": self.jitter,
            "rtt": self.rtt,
            "mos": self.mos,
            "bitrate_stability": self.bitrate_stability,
            "audio_packet_loss": self.audio_packet_loss,
            "audio_jitter": self.audio_jitter,
            "video_packet_loss": self.video_packet_loss,
            "framerate": self.framerate,
            "resolution": self.resolution,
            "freeze": self.freeze,
        }


class MetricNormalizer:
    """Converts raw metrics into independent 0-100 sub-scores."""

    def __init__(
        self,
        thresholds: Optional[Dict[str, Thresholds]] = None,
        bitrate_sensitivity: float = 1.0,
    ):
        """
        Initialize metric normalizer.

        Args:
            thresholds: Band boundaries per lower-is-better metric
            bitrate_sensitivity: Multiplier applied to relative bitrate change
        """
        self._thresholds = {**DEFAULT_SCORE_THRESHOLDS, **(thresholds or {})}
        self._bitrate_sensitivity = bitrate_sensitivity

    def normalize(self, stats: QualityScoreInput) -> MetricScores:
        """
        Normalize every present metric of a sample.

        Args:
            stats: Raw metrics

        Returns:
            Sub-scores, with None for each missing metric
        """
        packet_loss = self._loss(stats.packet_loss, "packet_loss")
        jitter = self._band(stats.jitter, "jitter")
        rtt = self._band(stats.rtt, "rtt")

        mos = as_metric(stats.mos)
        if mos is not None and not 1.0 <= mos <= 5.0:
            logger.debug(f"Clamping out-of-range MOS: {mos}")

        bitrate = as_metric(stats.bitrate)
        bitrate_stability = None
        if bitrate is not None:
            bitrate_stability = bitrate_stability_score(
                bitrate,
                as_metric(stats.previous_bitrate),
                self._bitrate_sensitivity,
            )

        audio_packet_loss = self._loss(stats.audio_packet_loss, "audio_packet_loss")
        audio_jitter = self._band(stats.audio_jitter_buffer_delay, "audio_jitter_buffer_delay")

        video_packet_loss = None
        framerate = None
        resolution = None
        freeze = None
        if not stats.audio_only:
            video_packet_loss = self._loss(stats.video_packet_loss, "video_packet_loss")

            fps = as_metric(stats.framerate)
            if fps is not None:
                framerate = framerate_score(fps, as_metric(stats.target_framerate))

            width = as_metric(stats.resolution_width)
            height = as_metric(stats.resolution_height)
            if width is not None and height is not None:
                resolution = resolution_score(width, height)

            events = as_metric(stats.degradation_events)
            if events is not None:
                freeze = freeze_score(events)

        return MetricScores(
            packet_loss=packet_loss,
            jitter=jitter,
            rtt=rtt,
            mos=mos_score(mos) if mos is not None else None,
            bitrate_stability=bitrate_stability,
            audio_packet_loss=audio_packet_loss,
            audio_jitter=audio_jitter,
            video_packet_loss=video_packet_loss,
            framerate=framerate,
            resolution=resolution,
            freeze=freeze,
        )

    def _band(self, raw, name: str) -> Optional[float]:
        value = as_metric(raw)
        if value is None:
            return None
        if value < 0:
            logger.debug(f"Clamping negative {name}: {value}")
        return band_score(value, self._thresholds[name])

    def _loss(self, raw, name: str) -> Optional[float]:
        value = as_metric(raw)
        if value is None:
            return None
        if not 0 <= value <= 100:
            logger.debug(f"Clamping out-of-range {name}: {value}")
        return band_score(clamp(value, 0.0, 100.0), self._thresholds["packet_loss"])
