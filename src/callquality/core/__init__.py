"""
Core callquality components.

This module contains configuration, error types and the raw sample model.
"""

from callquality.core.config import (
    Config,
    QualityScoreWeights,
    ScoringConfig,
    HistoryConfig,
    IndicatorConfig,
    BandwidthConstraints,
    AdaptationConfig,
    load_config,
)
from callquality.core.exceptions import CallQualityError, ConfigurationError
from callquality.core.sample import (
    VIDEO_RESOLUTIONS,
    VideoResolution,
    QualityScoreInput,
    NetworkQualityInput,
    BandwidthAdaptationInput,
    CallStatsSample,
)

__all__ = [
    "Config",
    "QualityScoreWeights",
    "ScoringConfig",
    "HistoryConfig",
    "IndicatorConfig",
    "BandwidthConstraints",
    "AdaptationConfig",
    "load_config",
    "CallQualityError",
    "ConfigurationError",
    "VIDEO_RESOLUTIONS",
    "VideoResolution",
    "QualityScoreInput",
    "NetworkQualityInput",
    "BandwidthAdaptationInput",
    "CallStatsSample",
]
