"""
Configuration management for callquality.

Handles loading, validation, and access to configuration settings.
"""

import logging
import math
import numbers
import os
import yaml
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path

from callquality.core.exceptions import ConfigurationError
from callquality.core.sample import VIDEO_RESOLUTIONS, VideoResolution

logger = logging.getLogger(__name__)


# Default configuration paths
CONFIG_PATHS = [
    "/etc/callquality/config.yaml",
    os.path.expanduser("~/.config/callquality/config.yaml"),
    "config.yaml",
]

# Band boundaries are [excellent, good, fair, poor]; lower values are better
Thresholds = Tuple[float, float, float, float]

DEFAULT_SCORE_THRESHOLDS: Dict[str, Thresholds] = {
    "packet_loss": (0.5, 1, 2, 5),
    "jitter": (10, 20, 40, 80),
    "rtt": (50, 100, 200, 400),
    "audio_jitter_buffer_delay": (20, 40, 80, 150),
}

DEFAULT_NETWORK_THRESHOLDS: Dict[str, Thresholds] = {
    "rtt": (50, 100, 200, 400),
    "packet_loss": (0.5, 1, 2, 5),
    "jitter": (10, 20, 40, 80),
}

DEFAULT_NETWORK_COLORS: Dict[str, str] = {
    "excellent": "#22c55e",  # green-500
    "good": "#22c55e",  # green-500
    "fair": "#eab308",  # yellow-500
    "poor": "#f97316",  # orange-500
    "critical": "#ef4444",  # red-500
    "unknown": "#9ca3af",  # gray-400
}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _check_number(
    value: Any,
    name: str,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> None:
    if not _is_number(value):
        raise ConfigurationError(f"{name} must be a number, got {value!r}", field=name)
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}", field=name)
    if maximum is not None and value > maximum:
        raise ConfigurationError(f"{name} must be <= {maximum}, got {value}", field=name)


def _check_range(low: Any, high: Any, low_name: str, high_name: str) -> None:
    if low > high:
        raise ConfigurationError(
            f"{low_name} ({low}) must not exceed {high_name} ({high})",
            field=low_name,
        )


def _check_thresholds(values: Any, name: str) -> None:
    if not isinstance(values, (list, tuple)) or len(values) != 4:
        raise ConfigurationError(
            f"{name} must be four values [excellent, good, fair, poor]",
            field=name,
        )
    for value in values:
        _check_number(value, name, minimum=0)
    if any(values[i] >= values[i + 1] for i in range(3)):
        raise ConfigurationError(f"{name} must be strictly ascending, got {list(values)}", field=name)


def _section(data: Any, name: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigurationError(f"{name} must be a mapping", field=name)
    return dict(data)


def _threshold_map(
    defaults: Dict[str, Thresholds],
    overrides: Any,
    name: str,
) -> Dict[str, Thresholds]:
    merged = dict(defaults)
    for metric, values in _section(overrides, name).items():
        if not isinstance(values, (list, tuple)):
            raise ConfigurationError(f"{name}.{metric} must be a list", field=f"{name}.{metric}")
        merged[metric] = tuple(values)
    return merged


def _build(cls, data: Any, name: str):
    """Instantiate a config dataclass from a mapping, rejecting unknown keys."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"{name} must be a mapping", field=name)
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {name} settings: {', '.join(sorted(unknown))}",
            field=f"{name}.{sorted(unknown)[0]}",
        )
    return cls(**data)


@dataclass
class QualityScoreWeights:
    """Weights for combining metric sub-scores. Conceptually sum to 1.0."""
    packet_loss: float = 0.25
    jitter: float = 0.15
    rtt: float = 0.2
    mos: float = 0.25
    bitrate_stability: float = 0.15

    def validate(self) -> None:
        for name, value in self.to_dict().items():
            _check_number(value, f"weights.{name}", minimum=0)
        if self.total() <= 0:
            raise ConfigurationError("At least one weight must be positive", field="weights")

    def total(self) -> float:
        return sum(self.to_dict().values())

    def to_dict(self) -> Dict[str, float]:
        return {
            "packet_loss": self.packet_loss,
            "jitter": self.jitter,
            "rtt": self.rtt,
            "mos": self.mos,
            "bitrate_stability": self.bitrate_stability,
        }


@dataclass
class ScoringConfig:
    """Metric normalization and aggregation configuration."""
    weights: QualityScoreWeights = field(default_factory=QualityScoreWeights)
    bitrate_sensitivity: float = 1.0
    thresholds: Dict[str, Thresholds] = field(
        default_factory=lambda: dict(DEFAULT_SCORE_THRESHOLDS)
    )

    def validate(self) -> None:
        self.weights.validate()
        _check_number(self.bitrate_sensitivity, "scoring.bitrate_sensitivity", minimum=0)
        for metric in DEFAULT_SCORE_THRESHOLDS:
            if metric not in self.thresholds:
                raise ConfigurationError(
                    f"Missing score thresholds for {metric}",
                    field=f"scoring.thresholds.{metric}",
                )
            _check_thresholds(self.thresholds[metric], f"scoring.thresholds.{metric}")


@dataclass
class HistoryConfig:
    """Score history and trend configuration."""
    capacity: int = 10
    trend_epsilon: float = 0.5  # Score points per sample

    def validate(self) -> None:
        if not isinstance(self.capacity, int) or isinstance(self.capacity, bool):
            raise ConfigurationError("history.capacity must be an integer", field="history.capacity")
        _check_number(self.capacity, "history.capacity", minimum=1)
        _check_number(self.trend_epsilon, "history.trend_epsilon", minimum=0)


@dataclass
class IndicatorConfig:
    """Network quality indicator configuration."""
    thresholds: Dict[str, Thresholds] = field(
        default_factory=lambda: dict(DEFAULT_NETWORK_THRESHOLDS)
    )
    colors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_NETWORK_COLORS))
    estimate_bandwidth: bool = True

    def validate(self) -> None:
        for metric in DEFAULT_NETWORK_THRESHOLDS:
            if metric not in self.thresholds:
                raise ConfigurationError(
                    f"Missing indicator thresholds for {metric}",
                    field=f"indicator.thresholds.{metric}",
                )
            _check_thresholds(self.thresholds[metric], f"indicator.thresholds.{metric}")
        for level in DEFAULT_NETWORK_COLORS:
            color = self.colors.get(level)
            if not isinstance(color, str) or not color:
                raise ConfigurationError(
                    f"Missing color for level {level}",
                    field=f"indicator.colors.{level}",
                )


@dataclass
class BandwidthConstraints:
    """Bounds for bandwidth adaptation suggestions."""
    min_video_bitrate: float = 100  # kbps
    max_video_bitrate: float = 2500
    min_audio_bitrate: float = 16
    max_audio_bitrate: float = 128
    target_framerate: float = 30
    min_framerate: float = 15
    min_resolution: VideoResolution = field(default_factory=lambda: VIDEO_RESOLUTIONS[-1])
    preferred_resolution: VideoResolution = field(default_factory=lambda: VIDEO_RESOLUTIONS[1])
    resolution_presets: List[VideoResolution] = field(
        default_factory=lambda: list(VIDEO_RESOLUTIONS)
    )

    def validate(self) -> None:
        for name in (
            "min_video_bitrate",
            "max_video_bitrate",
            "min_audio_bitrate",
            "max_audio_bitrate",
            "target_framerate",
            "min_framerate",
        ):
            _check_number(getattr(self, name), f"constraints.{name}", minimum=0)

        _check_range(self.min_video_bitrate, self.max_video_bitrate,
                     "constraints.min_video_bitrate", "constraints.max_video_bitrate")
        _check_range(self.min_audio_bitrate, self.max_audio_bitrate,
                     "constraints.min_audio_bitrate", "constraints.max_audio_bitrate")
        _check_range(self.min_framerate, self.target_framerate,
                     "constraints.min_framerate", "constraints.target_framerate")

        for name in ("min_resolution", "preferred_resolution"):
            resolution = getattr(self, name)
            if not isinstance(resolution, VideoResolution):
                raise ConfigurationError(f"constraints.{name} must be a resolution", field=f"constraints.{name}")
        _check_range(self.min_resolution.pixels, self.preferred_resolution.pixels,
                     "constraints.min_resolution", "constraints.preferred_resolution")

        if not self.resolution_presets:
            raise ConfigurationError("At least one resolution preset is required",
                                     field="constraints.resolution_presets")
        for preset in self.resolution_presets:
            if not isinstance(preset, VideoResolution) or preset.pixels <= 0:
                raise ConfigurationError(f"Invalid resolution preset: {preset!r}",
                                         field="constraints.resolution_presets")

    def sorted_presets(self) -> List[VideoResolution]:
        """Resolution presets ordered by pixel count, highest first."""
        return sorted(self.resolution_presets, key=lambda r: r.pixels, reverse=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_video_bitrate": self.min_video_bitrate,
            "max_video_bitrate": self.max_video_bitrate,
            "min_audio_bitrate": self.min_audio_bitrate,
            "max_audio_bitrate": self.max_audio_bitrate,
            "target_framerate": self.target_framerate,
            "min_framerate": self.min_framerate,
            "min_resolution": self.min_resolution.to_dict(),
            "preferred_resolution": self.preferred_resolution.to_dict(),
            "resolution_presets": [r.to_dict() for r in self.resolution_presets],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BandwidthConstraints":
        data = dict(data)
        try:
            for name in ("min_resolution", "preferred_resolution"):
                if isinstance(data.get(name), dict):
                    data[name] = VideoResolution.from_dict(data[name])
            if "resolution_presets" in data:
                data["resolution_presets"] = [
                    r if isinstance(r, VideoResolution) else VideoResolution.from_dict(r)
                    for r in data["resolution_presets"]
                ]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Invalid resolution in constraints: {e}", field="constraints")
        return _build(cls, data, "constraints")


@dataclass
class AdaptationConfig:
    """Bandwidth adaptation configuration."""
    constraints: BandwidthConstraints = field(default_factory=BandwidthConstraints)
    sensitivity: float = 0.5  # 0-1, higher reacts to fewer degradation events
    auto_adapt: bool = False  # Recommendations flagged for automatic application
    window_size: int = 5  # Ticks of degradation history
    degradation_threshold: int = 2  # Events in window tolerated before downgrading
    upgrade_ratio: float = 2.0  # available / current bitrate needed to upgrade
    critical_packet_loss: float = 8.0  # Percent

    def validate(self) -> None:
        self.constraints.validate()
        _check_number(self.sensitivity, "adaptation.sensitivity", minimum=0, maximum=1)
        if not isinstance(self.auto_adapt, bool):
            raise ConfigurationError("adaptation.auto_adapt must be a boolean", field="adaptation.auto_adapt")
        if not isinstance(self.window_size, int) or isinstance(self.window_size, bool):
            raise ConfigurationError("adaptation.window_size must be an integer", field="adaptation.window_size")
        _check_number(self.window_size, "adaptation.window_size", minimum=1)
        _check_number(self.degradation_threshold, "adaptation.degradation_threshold", minimum=0)
        _check_number(self.upgrade_ratio, "adaptation.upgrade_ratio", minimum=1)
        _check_number(self.critical_packet_loss, "adaptation.critical_packet_loss", minimum=0, maximum=100)


@dataclass
class Config:
    """Main configuration class."""
    version: int = 1
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    indicator: IndicatorConfig = field(default_factory=IndicatorConfig)
    adaptation: AdaptationConfig = field(default_factory=AdaptationConfig)

    def validate(self) -> "Config":
        """
        Validate every section.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: If any value is invalid
        """
        self.scoring.validate()
        self.history.validate()
        self.indicator.validate()
        self.adaptation.validate()
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create a validated Config from dictionary."""
        config = cls()

        if "version" in data:
            config.version = data["version"]

        if "scoring" in data:
            scoring = _section(data["scoring"], "scoring")
            if "weights" in scoring:
                scoring["weights"] = _build(QualityScoreWeights, scoring["weights"], "weights")
            if "thresholds" in scoring:
                scoring["thresholds"] = _threshold_map(
                    DEFAULT_SCORE_THRESHOLDS, scoring["thresholds"], "scoring.thresholds"
                )
            config.scoring = _build(ScoringConfig, scoring, "scoring")

        if "history" in data:
            config.history = _build(HistoryConfig, data["history"], "history")

        if "indicator" in data:
            indicator = _section(data["indicator"], "indicator")
            if "thresholds" in indicator:
                indicator["thresholds"] = _threshold_map(
                    DEFAULT_NETWORK_THRESHOLDS, indicator["thresholds"], "indicator.thresholds"
                )
            if "colors" in indicator:
                indicator["colors"] = {
                    **DEFAULT_NETWORK_COLORS,
                    **_section(indicator["colors"], "indicator.colors"),
                }
            config.indicator = _build(IndicatorConfig, indicator, "indicator")

        if "adaptation" in data:
            adaptation = _section(data["adaptation"], "adaptation")
            if "constraints" in adaptation:
                adaptation["constraints"] = BandwidthConstraints.from_dict(
                    _section(adaptation["constraints"], "constraints")
                )
            config.adaptation = _build(AdaptationConfig, adaptation, "adaptation")

        return config.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert Config to dictionary."""
        return {
            "version": self.version,
            "scoring": {
                "weights": self.scoring.weights.to_dict(),
                "bitrate_sensitivity": self.scoring.bitrate_sensitivity,
                "thresholds": {k: list(v) for k, v in self.scoring.thresholds.items()},
            },
            "history": {
                "capacity": self.history.capacity,
                "trend_epsilon": self.history.trend_epsilon,
            },
            "indicator": {
                "thresholds": {k: list(v) for k, v in self.indicator.thresholds.items()},
                "colors": dict(self.indicator.colors),
                "estimate_bandwidth": self.indicator.estimate_bandwidth,
            },
            "adaptation": {
                "constraints": self.adaptation.constraints.to_dict(),
                "sensitivity": self.adaptation.sensitivity,
                "auto_adapt": self.adaptation.auto_adapt,
                "window_size": self.adaptation.window_size,
                "degradation_threshold": self.adaptation.degradation_threshold,
                "upgrade_ratio": self.adaptation.upgrade_ratio,
                "critical_packet_loss": self.adaptation.critical_packet_loss,
            },
        }

    def save(self, path: Optional[str] = None):
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATHS[0]

        # Ensure directory exists
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from file.

    Args:
        path: Path to config file. If None, searches default locations.

    Returns:
        Config object with loaded or default settings.
    """
    if path is not None:
        paths_to_try = [path]
    else:
        paths_to_try = CONFIG_PATHS

    for config_path in paths_to_try:
        if os.path.exists(config_path):
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f)
                    if data:
                        return Config.from_dict(data)
            except (OSError, yaml.YAMLError, ConfigurationError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}")

    # Return default config
    return Config()


def get_config_path() -> Optional[str]:
    """Get the path to the active config file."""
    for path in CONFIG_PATHS:
        if os.path.exists(path):
            return path
    return None
