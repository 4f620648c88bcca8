"""
Raw call statistics samples for callquality.

The upstream statistics source delivers one CallStatsSample per tick. Each
component reads its own projection of it. Every metric is optional: a field
left as None is missing and is never replaced by a default value.
"""

import logging
import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


def as_metric(value: Any) -> Optional[float]:
    """
    Return a numeric metric value, or None when it is missing or unparsable.

    Any real number is accepted, numpy scalars included. Booleans, strings,
    non-finite floats and integers too large for a float are unparsable.
    """
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, numbers.Real):
        logger.debug(f"Ignoring unparsable metric value: {value!r}")
        return None
    try:
        value = float(value)
    except OverflowError:
        logger.debug(f"Ignoring metric value out of float range: {value!r}")
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp a value to [minimum, maximum]."""
    return max(minimum, min(maximum, value))


@dataclass(frozen=True)
class VideoResolution:
    """Video resolution preset."""
    width: int
    height: int
    label: str = ""

    @property
    def pixels(self) -> int:
        return self.width * self.height

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VideoResolution":
        return cls(
            width=data["width"],
            height=data["height"],
            label=data.get("label", f"{data['height']}p"),
        )


# Standard presets, highest first
VIDEO_RESOLUTIONS: List[VideoResolution] = [
    VideoResolution(1920, 1080, "1080p"),
    VideoResolution(1280, 720, "720p"),
    VideoResolution(854, 480, "480p"),
    VideoResolution(640, 360, "360p"),
    VideoResolution(426, 240, "240p"),
]


@dataclass
class QualityScoreInput:
    """Metrics consumed by the quality score pipeline."""
    packet_loss: Optional[float] = None  # Percent (0-100)
    jitter: Optional[float] = None  # ms
    rtt: Optional[float] = None  # ms
    mos: Optional[float] = None  # 1.0-5.0
    bitrate: Optional[float] = None  # kbps
    previous_bitrate: Optional[float] = None  # kbps
    framerate: Optional[float] = None
    target_framerate: Optional[float] = None
    resolution_width: Optional[int] = None
    resolution_height: Optional[int] = None
    degradation_events: Optional[int] = None  # Video freezes / quality drops
    audio_only: bool = False

    # Stream specific overrides
    audio_packet_loss: Optional[float] = None
    audio_jitter_buffer_delay: Optional[float] = None  # ms
    video_packet_loss: Optional[float] = None


@dataclass
class NetworkQualityInput:
    """Metrics consumed by the network quality classifier."""
    rtt: Optional[float] = None
    jitter: Optional[float] = None
    packet_loss: Optional[float] = None
    bitrate: Optional[float] = None
    available_bitrate: Optional[float] = None
    connection_type: Optional[str] = None  # host, srflx, prflx, relay


@dataclass
class BandwidthAdaptationInput:
    """Metrics consumed by the bandwidth adaptation advisor."""
    available_bitrate: Optional[float] = None  # kbps
    current_bitrate: Optional[float] = None  # kbps
    packet_loss: Optional[float] = None
    rtt: Optional[float] = None
    jitter: Optional[float] = None
    current_resolution: Optional[VideoResolution] = None
    current_framerate: Optional[float] = None
    current_audio_bitrate: Optional[float] = None
    video_enabled: bool = True
    degradation_events: Optional[int] = None

    def has_metrics(self) -> bool:
        """Whether any metric driving the recommendation is present."""
        return any(
            as_metric(value) is not None
            for value in (
                self.available_bitrate,
                self.current_bitrate,
                self.packet_loss,
                self.rtt,
                self.jitter,
                self.degradation_events,
            )
        )


@dataclass
class CallStatsSample:
    """One tick of transport statistics for an active call."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    packet_loss: Optional[float] = None
    jitter: Optional[float] = None
    rtt: Optional[float] = None
    mos: Optional[float] = None
    bitrate: Optional[float] = None
    previous_bitrate: Optional[float] = None
    available_bitrate: Optional[float] = None
    audio_bitrate: Optional[float] = None
    framerate: Optional[float] = None
    target_framerate: Optional[float] = None
    resolution: Optional[VideoResolution] = None
    degradation_events: Optional[int] = None
    connection_type: Optional[str] = None
    audio_only: bool = False
    video_enabled: bool = True
    audio_packet_loss: Optional[float] = None
    audio_jitter_buffer_delay: Optional[float] = None
    video_packet_loss: Optional[float] = None

    def to_score_input(self, previous_bitrate: Optional[float] = None) -> QualityScoreInput:
        """
        Project the sample for the quality score pipeline.

        Args:
            previous_bitrate: Fallback when the sample carries no previous bitrate

        Returns:
            Score input
        """
        return QualityScoreInput(
            packet_loss=self.packet_loss,
            jitter=self.jitter,
            rtt=self.rtt,
            mos=self.mos,
            bitrate=self.bitrate,
            previous_bitrate=(
                self.previous_bitrate if self.previous_bitrate is not None else previous_bitrate
            ),
            framerate=self.framerate,
            target_framerate=self.target_framerate,
            resolution_width=self.resolution.width if self.resolution else None,
            resolution_height=self.resolution.height if self.resolution else None,
            degradation_events=self.degradation_events,
            audio_only=self.audio_only,
            audio_packet_loss=self.audio_packet_loss,
            audio_jitter_buffer_delay=self.audio_jitter_buffer_delay,
            video_packet_loss=self.video_packet_loss,
        )

    def to_network_input(self) -> NetworkQualityInput:
        return NetworkQualityInput(
            rtt=self.rtt,
            jitter=self.jitter,
            packet_loss=self.packet_loss,
            bitrate=self.bitrate,
            available_bitrate=self.available_bitrate,
            connection_type=self.connection_type,
        )

    def to_bandwidth_input(self) -> BandwidthAdaptationInput:
        return BandwidthAdaptationInput(
            available_bitrate=self.available_bitrate,
            current_bitrate=self.bitrate,
            packet_loss=self.packet_loss,
            rtt=self.rtt,
            jitter=self.jitter,
            current_resolution=self.resolution,
            current_framerate=self.framerate,
            current_audio_bitrate=self.audio_bitrate,
            video_enabled=self.video_enabled and not self.audio_only,
            degradation_events=self.degradation_events,
        )
