"""
Bandwidth adaptation advisor for callquality.

Turns current network conditions, configured constraints and a short window
of degradation events into an upgrade/maintain/downgrade/critical
recommendation. The advisor only recommends: applying a suggestion to a
live encoder is up to the caller.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple

from callquality.core.config import AdaptationConfig
from callquality.core.sample import (
    BandwidthAdaptationInput,
    VideoResolution,
    as_metric,
    clamp,
)
from callquality.quality.scoring import CallQualityScore

logger = logging.getLogger(__name__)


class BandwidthAction(Enum):
    """Recommended adaptation action."""
    UPGRADE = "upgrade"
    MAINTAIN = "maintain"
    DOWNGRADE = "downgrade"
    CRITICAL = "critical"


class RecommendationPriority(Enum):
    """Priority level for recommendations."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SuggestionType(Enum):
    """Area a suggestion applies to."""
    VIDEO = "video"
    AUDIO = "audio"


# A tick counts as degraded when any of these is reached
DEGRADED_BANDWIDTH_RATIO = 0.8  # available / current
DEGRADED_PACKET_LOSS = 3.0  # %
DEGRADED_RTT = 350.0  # ms
DEGRADED_SCORE = 40.0  # overall, grade F

# Upgrades need all of these to hold
UPGRADE_MAX_PACKET_LOSS = 1.5
UPGRADE_MAX_RTT = 200.0
UPGRADE_MAX_JITTER = 40.0

FRAMERATE_TIERS = (5, 10, 15, 20, 24, 30, 60)

# Impact scaling for one tier step, by relative reduction
RESOLUTION_IMPACT = 80
FRAMERATE_IMPACT = 60

DISABLE_VIDEO_IMPACT = 80
MIN_RESOLUTION_IMPACT = 70
AUDIO_CRITICAL_IMPACT = 20
AUDIO_STEP_IMPACT = 15
AUDIO_UPGRADE_IMPACT = 10

# Share of available bandwidth a video bitrate suggestion may use
BITRATE_HEADROOM = 0.85

IMPROVEMENT_DECAY = 0.6


@dataclass(frozen=True)
class AdaptationSuggestion:
    """A single adaptation suggestion with its numeric target."""
    type: SuggestionType
    message: str
    current: str
    recommended: str
    impact: int  # 0-100
    resolution: Optional[VideoResolution] = None
    framerate: Optional[float] = None
    bitrate: Optional[float] = None  # kbps
    video_enabled: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "current": self.current,
            "recommended": self.recommended,
            "impact": self.impact,
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "framerate": self.framerate,
            "bitrate": self.bitrate,
            "video_enabled": self.video_enabled,
        }


@dataclass(frozen=True)
class BandwidthRecommendation:
    """Bandwidth adaptation recommendation for one tick."""
    action: BandwidthAction = BandwidthAction.MAINTAIN
    suggestions: Tuple[AdaptationSuggestion, ...] = ()
    priority: RecommendationPriority = RecommendationPriority.LOW
    estimated_improvement: int = 0  # 0-100
    auto_apply: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "suggestions": [s.to_dict() for s in self.suggestions],
            "priority": self.priority.value,
            "estimated_improvement": self.estimated_improvement,
            "auto_apply": self.auto_apply,
            "timestamp": self.timestamp.isoformat(),
        }


def estimate_improvement(suggestions: List[AdaptationSuggestion]) -> int:
    """Sum suggestion impacts with diminishing returns, clamped to 0-100."""
    improvement = 0.0
    factor = 1.0
    for suggestion in sorted(suggestions, key=lambda s: s.impact, reverse=True):
        improvement += clamp(suggestion.impact, 0, 100) * factor
        factor *= IMPROVEMENT_DECAY
    return int(round(clamp(improvement, 0.0, 100.0)))


def _step_impact(current: float, target: float, scale: int) -> int:
    """Impact of moving between tiers, by relative size of the step."""
    if current <= 0 or target <= 0:
        return 0
    low, high = min(current, target), max(current, target)
    return int(round(clamp((1.0 - low / high) * scale, 0.0, 100.0)))


def _fps(value: float) -> str:
    return f"{value:g}fps"


class BandwidthAdaptationAdvisor:
    """Recommends resolution, framerate and bitrate adjustments."""

    def __init__(self, config: Optional[AdaptationConfig] = None):
        """
        Initialize bandwidth adaptation advisor.

        Args:
            config: Adaptation settings and constraints

        Raises:
            ConfigurationError: If the settings or constraints are invalid
        """
        self._config = config or AdaptationConfig()
        self._config.validate()
        self._window: Deque[int] = deque(maxlen=self._config.window_size)
        self._last_action = BandwidthAction.MAINTAIN

    @property
    def config(self) -> AdaptationConfig:
        return self._config

    @property
    def auto_adapt(self) -> bool:
        return self._config.auto_adapt

    def configure(self, config: AdaptationConfig) -> None:
        """
        Replace settings, keeping the newest degradation history.

        Raises:
            ConfigurationError: If the settings are invalid; the active ones stay in effect
        """
        config.validate()
        self._config = config
        if self._window.maxlen != config.window_size:
            self._window = deque(self._window, maxlen=config.window_size)

    def recent_degradation_events(self) -> int:
        return sum(self._window)

    def trigger_count(self) -> int:
        """Degradation events the window tolerates before a downgrade."""
        scale = 1.5 - self._config.sensitivity
        return int(round(self._config.degradation_threshold * scale))

    def reset(self) -> None:
        self._window.clear()
        self._last_action = BandwidthAction.MAINTAIN

    def advise(
        self,
        stats: Optional[BandwidthAdaptationInput],
        score: Optional[CallQualityScore] = None,
    ) -> BandwidthRecommendation:
        """
        Produce a recommendation for the current tick.

        Args:
            stats: Current network and media state
            score: Aggregated quality score for the same tick

        Returns:
            Recommendation; maintain when there is nothing to act on
        """
        stats = stats or BandwidthAdaptationInput()
        overall = score.overall if score is not None else None

        if not stats.has_metrics() and overall is None:
            return self._recommend(BandwidthAction.MAINTAIN, [], RecommendationPriority.LOW)

        available = self._non_negative(stats.available_bitrate)
        current = self._non_negative(stats.current_bitrate)
        packet_loss = as_metric(stats.packet_loss)
        if packet_loss is not None:
            packet_loss = clamp(packet_loss, 0.0, 100.0)
        rtt = self._non_negative(stats.rtt)
        jitter = self._non_negative(stats.jitter)

        events = int(self._non_negative(stats.degradation_events) or 0)
        if self._is_degraded(available, current, packet_loss, rtt, overall):
            events += 1
        self._window.append(events)
        window_total = self.recent_degradation_events()
        trigger = self.trigger_count()

        if self._is_critical(stats, available, current, packet_loss):
            return self._recommend(
                BandwidthAction.CRITICAL,
                self._critical_suggestions(stats, available),
                RecommendationPriority.CRITICAL,
            )

        if window_total > trigger:
            priority = (
                RecommendationPriority.HIGH
                if window_total >= 2 * max(1, trigger)
                else RecommendationPriority.MEDIUM
            )
            return self._recommend(
                BandwidthAction.DOWNGRADE,
                self._downgrade_suggestions(stats, current),
                priority,
            )

        if self._can_upgrade(available, current, packet_loss, rtt, jitter, window_total):
            suggestions = self._upgrade_suggestions(stats, available, current)
            if suggestions:
                return self._recommend(BandwidthAction.UPGRADE, suggestions, RecommendationPriority.LOW)

        return self._recommend(BandwidthAction.MAINTAIN, [], RecommendationPriority.LOW)

    # Conditions

    def _is_degraded(
        self,
        available: Optional[float],
        current: Optional[float],
        packet_loss: Optional[float],
        rtt: Optional[float],
        overall: Optional[float],
    ) -> bool:
        if available is not None and current:
            if available / current < DEGRADED_BANDWIDTH_RATIO:
                return True
        if packet_loss is not None and packet_loss >= DEGRADED_PACKET_LOSS:
            return True
        if rtt is not None and rtt >= DEGRADED_RTT:
            return True
        return overall is not None and overall < DEGRADED_SCORE

    def _is_critical(
        self,
        stats: BandwidthAdaptationInput,
        available: Optional[float],
        current: Optional[float],
        packet_loss: Optional[float],
    ) -> bool:
        constraints = self._config.constraints
        floor = constraints.min_video_bitrate if stats.video_enabled else constraints.min_audio_bitrate

        if available is not None and available < floor:
            return True
        if packet_loss is not None and packet_loss > self._config.critical_packet_loss:
            return True
        return available == 0 and current == 0

    def _can_upgrade(
        self,
        available: Optional[float],
        current: Optional[float],
        packet_loss: Optional[float],
        rtt: Optional[float],
        jitter: Optional[float],
        window_total: int,
    ) -> bool:
        if window_total > 0 or available is None or not current:
            return False
        if available / current < self._config.upgrade_ratio:
            return False
        if packet_loss is not None and packet_loss >= UPGRADE_MAX_PACKET_LOSS:
            return False
        if rtt is not None and rtt >= UPGRADE_MAX_RTT:
            return False
        return jitter is None or jitter < UPGRADE_MAX_JITTER

    # Suggestions

    def _critical_suggestions(
        self,
        stats: BandwidthAdaptationInput,
        available: Optional[float],
    ) -> List[AdaptationSuggestion]:
        constraints = self._config.constraints
        suggestions = []

        if stats.video_enabled:
            lowest = constraints.min_resolution
            resolution = stats.current_resolution
            starved = available is not None and available < constraints.min_video_bitrate

            if starved or (resolution is not None and resolution.pixels <= lowest.pixels):
                suggestions.append(AdaptationSuggestion(
                    type=SuggestionType.VIDEO,
                    message="Disable video and switch to audio-only call",
                    current="Video enabled",
                    recommended="Audio only",
                    impact=DISABLE_VIDEO_IMPACT,
                    video_enabled=False,
                ))
            else:
                suggestions.append(AdaptationSuggestion(
                    type=SuggestionType.VIDEO,
                    message=f"Drop video resolution to {lowest.label}",
                    current=resolution.label if resolution else "unknown",
                    recommended=lowest.label,
                    impact=MIN_RESOLUTION_IMPACT,
                    resolution=lowest,
                    bitrate=constraints.min_video_bitrate,
                ))

        audio = self._non_negative(stats.current_audio_bitrate)
        if audio is not None and audio > constraints.min_audio_bitrate:
            target = self._audio_bitrate(math.floor(audio * 0.5))
            if target < audio:
                suggestions.append(self._audio_suggestion(audio, target, AUDIO_CRITICAL_IMPACT, "Reduce"))

        return suggestions

    def _downgrade_suggestions(
        self,
        stats: BandwidthAdaptationInput,
        current_bitrate: Optional[float],
    ) -> List[AdaptationSuggestion]:
        constraints = self._config.constraints
        candidates = []

        if stats.video_enabled:
            resolution = stats.current_resolution
            if resolution is not None:
                lower = self._next_lower_resolution(resolution)
                if lower is not None:
                    candidates.append(AdaptationSuggestion(
                        type=SuggestionType.VIDEO,
                        message=f"Reduce video resolution from {resolution.label} to {lower.label}",
                        current=resolution.label,
                        recommended=lower.label,
                        impact=_step_impact(resolution.pixels, lower.pixels, RESOLUTION_IMPACT),
                        resolution=lower,
                        bitrate=self._scaled_bitrate(current_bitrate, lower.pixels / resolution.pixels),
                    ))

            framerate = self._non_negative(stats.current_framerate)
            if framerate:
                lower_fps = self._next_framerate(framerate, higher=False)
                if lower_fps is not None:
                    candidates.append(AdaptationSuggestion(
                        type=SuggestionType.VIDEO,
                        message=f"Reduce framerate from {_fps(framerate)} to {_fps(lower_fps)}",
                        current=_fps(framerate),
                        recommended=_fps(lower_fps),
                        impact=_step_impact(framerate, lower_fps, FRAMERATE_IMPACT),
                        framerate=lower_fps,
                    ))

        if candidates:
            # One tier down: whichever step helps most, resolution on ties
            return [max(candidates, key=lambda s: s.impact)]

        audio = self._non_negative(stats.current_audio_bitrate)
        if audio is not None and audio > constraints.min_audio_bitrate:
            target = self._audio_bitrate(math.floor(audio * 0.75))
            if target < audio:
                return [self._audio_suggestion(audio, target, AUDIO_STEP_IMPACT, "Reduce")]

        return []

    def _upgrade_suggestions(
        self,
        stats: BandwidthAdaptationInput,
        available: float,
        current_bitrate: float,
    ) -> List[AdaptationSuggestion]:
        if stats.video_enabled:
            resolution = stats.current_resolution
            if resolution is not None:
                higher = self._next_higher_resolution(resolution)
                if higher is not None:
                    bitrate = self._scaled_bitrate(
                        current_bitrate,
                        higher.pixels / resolution.pixels,
                        ceiling=available * BITRATE_HEADROOM,
                    )
                    return [AdaptationSuggestion(
                        type=SuggestionType.VIDEO,
                        message=f"Increase video resolution from {resolution.label} to {higher.label}",
                        current=resolution.label,
                        recommended=higher.label,
                        impact=_step_impact(resolution.pixels, higher.pixels, RESOLUTION_IMPACT),
                        resolution=higher,
                        bitrate=bitrate,
                    )]

            framerate = self._non_negative(stats.current_framerate)
            if framerate:
                higher_fps = self._next_framerate(framerate, higher=True)
                if higher_fps is not None:
                    return [AdaptationSuggestion(
                        type=SuggestionType.VIDEO,
                        message=f"Increase framerate from {_fps(framerate)} to {_fps(higher_fps)}",
                        current=_fps(framerate),
                        recommended=_fps(higher_fps),
                        impact=_step_impact(framerate, higher_fps, FRAMERATE_IMPACT),
                        framerate=higher_fps,
                    )]
            return []

        audio = self._non_negative(stats.current_audio_bitrate)
        constraints = self._config.constraints
        if audio is not None and audio < constraints.max_audio_bitrate:
            target = self._audio_bitrate(audio * 2)
            if target > audio:
                return [self._audio_suggestion(audio, target, AUDIO_UPGRADE_IMPACT, "Increase")]
        return []

    def _audio_suggestion(self, current: float, target: float, impact: int, verb: str) -> AdaptationSuggestion:
        return AdaptationSuggestion(
            type=SuggestionType.AUDIO,
            message=f"{verb} audio bitrate from {current:g}kbps to {target:g}kbps",
            current=f"{current:g}kbps",
            recommended=f"{target:g}kbps",
            impact=impact,
            bitrate=target,
        )

    # Tiers

    def _allowed_resolutions(self) -> List[VideoResolution]:
        """Presets between the minimum and preferred resolution, highest first."""
        constraints = self._config.constraints
        low = constraints.min_resolution.pixels
        high = constraints.preferred_resolution.pixels

        allowed: Dict[int, VideoResolution] = {}
        for preset in [constraints.preferred_resolution, constraints.min_resolution] + constraints.sorted_presets():
            if low <= preset.pixels <= high:
                allowed.setdefault(preset.pixels, preset)
        return [allowed[pixels] for pixels in sorted(allowed, reverse=True)]

    def _next_lower_resolution(self, current: VideoResolution) -> Optional[VideoResolution]:
        lower = [r for r in self._allowed_resolutions() if r.pixels < current.pixels]
        return lower[0] if lower else None

    def _next_higher_resolution(self, current: VideoResolution) -> Optional[VideoResolution]:
        higher = [r for r in self._allowed_resolutions() if r.pixels > current.pixels]
        return higher[-1] if higher else None

    def _framerate_tiers(self) -> List[float]:
        constraints = self._config.constraints
        low, high = constraints.min_framerate, constraints.target_framerate
        tiers = {float(t) for t in FRAMERATE_TIERS if low <= t <= high}
        tiers.update({float(low), float(high)})
        return sorted(tiers)

    def _next_framerate(self, current: float, higher: bool) -> Optional[float]:
        tiers = self._framerate_tiers()
        if higher:
            above = [t for t in tiers if t > current]
            return above[0] if above else None
        below = [t for t in tiers if t < current]
        return below[-1] if below else None

    # Bounds

    def _scaled_bitrate(
        self,
        current: Optional[float],
        ratio: float,
        ceiling: Optional[float] = None,
    ) -> Optional[float]:
        if not current:
            return None
        constraints = self._config.constraints
        target = current * ratio
        if ceiling is not None:
            target = min(target, ceiling)
        return float(round(clamp(target, constraints.min_video_bitrate, constraints.max_video_bitrate)))

    def _audio_bitrate(self, target: float) -> float:
        constraints = self._config.constraints
        return float(clamp(target, constraints.min_audio_bitrate, constraints.max_audio_bitrate))

    @staticmethod
    def _non_negative(raw) -> Optional[float]:
        value = as_metric(raw)
        if value is None:
            return None
        return max(0.0, value)

    def _recommend(
        self,
        action: BandwidthAction,
        suggestions: List[AdaptationSuggestion],
        priority: RecommendationPriority,
    ) -> BandwidthRecommendation:
        suggestions = sorted(suggestions, key=lambda s: s.impact, reverse=True)
        recommendation = BandwidthRecommendation(
            action=action,
            suggestions=tuple(suggestions),
            priority=priority,
            estimated_improvement=estimate_improvement(suggestions) if action != BandwidthAction.MAINTAIN else 0,
            auto_apply=self._config.auto_adapt,
        )

        if action != self._last_action:
            logger.info(
                f"Bandwidth recommendation changed: {self._last_action.value} -> {action.value} "
                f"(priority={priority.value}, improvement={recommendation.estimated_improvement})"
            )
            self._last_action = action

        return recommendation
