"""
Bandwidth adaptation recommendations for callquality.
"""

from callquality.adaptation.advisor import (
    BandwidthAction,
    RecommendationPriority,
    SuggestionType,
    AdaptationSuggestion,
    BandwidthRecommendation,
    BandwidthAdaptationAdvisor,
)

__all__ = [
    "BandwidthAction",
    "RecommendationPriority",
    "SuggestionType",
    "AdaptationSuggestion",
    "BandwidthRecommendation",
    "BandwidthAdaptationAdvisor",
]
