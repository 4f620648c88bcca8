"""
Call quality scoring.

Metric normalization, score aggregation, history and trend analysis, and
the per-call session that drives them.
"""

from callquality.quality.normalizer import MetricNormalizer, MetricScores
from callquality.quality.scoring import (
    QualityGrade,
    CallQualityScore,
    ScoreAggregator,
    get_grade,
)
from callquality.quality.history import (
    TrendDirection,
    QualityTrend,
    HistoryTracker,
    TrendAnalyzer,
)
from callquality.quality.session import CallQualitySession, QualitySessionUpdate

__all__ = [
    # Scoring
    "MetricNormalizer",
    "MetricScores",
    "QualityGrade",
    "CallQualityScore",
    "ScoreAggregator",
    "get_grade",
    # Trend
    "TrendDirection",
    "QualityTrend",
    "HistoryTracker",
    "TrendAnalyzer",
    # Session
    "CallQualitySession",
    "QualitySessionUpdate",
]
