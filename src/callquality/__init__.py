"""
callquality - Real-time call quality scoring

Derives, once per tick of transport statistics for an active call:
- a 0-100 quality score with letter grade and trend
- a display-ready network quality indicator
- a bandwidth/resolution adaptation recommendation
"""

__version__ = "0.1.0"
__author__ = "callquality Team"

from callquality.core.config import Config, load_config
from callquality.core.exceptions import CallQualityError, ConfigurationError
from callquality.core.sample import CallStatsSample, VideoResolution
from callquality.quality.session import CallQualitySession, QualitySessionUpdate

__all__ = [
    "CallQualitySession",
    "QualitySessionUpdate",
    "CallStatsSample",
    "VideoResolution",
    "Config",
    "load_config",
    "CallQualityError",
    "ConfigurationError",
    "__version__",
]
