"""
Network quality indicators for callquality.
"""

from callquality.network.indicator import (
    NetworkQualityLevel,
    NetworkDetails,
    NetworkQualityIndicatorData,
    NetworkQualityClassifier,
)

__all__ = [
    "NetworkQualityLevel",
    "NetworkDetails",
    "NetworkQualityIndicatorData",
    "NetworkQualityClassifier",
]
