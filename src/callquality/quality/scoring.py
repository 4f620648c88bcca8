"""
Score aggregation for call quality.

Combines normalized sub-scores into overall, audio, video and network
scores and assigns a letter grade.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from callquality.core.config import QualityScoreWeights
from callquality.core.sample import clamp
from callquality.quality.normalizer import MetricScores

logger = logging.getLogger(__name__)


class QualityGrade(Enum):
    """Letter grade for overall call quality."""
    A = "A"  # 90-100
    B = "B"  # 75-89
    C = "C"  # 60-74
    D = "D"  # 40-59
    F = "F"  # 0-39


# Lower bound of each grade, highest first
GRADE_THRESHOLDS = [
    (90.0, QualityGrade.A),
    (75.0, QualityGrade.B),
    (60.0, QualityGrade.C),
    (40.0, QualityGrade.D),
]

GRADE_DESCRIPTIONS = {
    QualityGrade.A: "Excellent call quality",
    QualityGrade.B: "Good call quality",
    QualityGrade.C: "Fair call quality",
    QualityGrade.D: "Poor call quality",
    QualityGrade.F: "Very poor call quality - consider reconnecting",
}

UNKNOWN_DESCRIPTION = "Call quality unknown - no statistics available"

VIDEO_WEIGHTS = {
    "video_packet_loss": 0.25,
    "framerate": 0.35,
    "resolution": 0.25,
    "freeze": 0.15,
}

NETWORK_WEIGHTS = {
    "rtt": 0.45,
    "jitter": 0.30,
    "packet_loss": 0.25,
}


def get_grade(overall: float) -> QualityGrade:
    """Determine quality grade from an overall score."""
    for threshold, grade in GRADE_THRESHOLDS:
        if overall >= threshold:
            return grade
    return QualityGrade.F


def describe(grade: Optional[QualityGrade]) -> str:
    if grade is None:
        return UNKNOWN_DESCRIPTION
    return GRADE_DESCRIPTIONS[grade]


def weighted_mean(pairs: Iterable[Tuple[Optional[float], float]]) -> Optional[float]:
    """
    Weighted mean over the (score, weight) pairs whose score is present.

    Weights of missing scores are dropped, which renormalizes the remaining
    weights. Returns None when nothing is present or the remaining weights
    sum to zero.
    """
    total_weight = 0.0
    weighted_sum = 0.0
    for score, weight in pairs:
        if score is None:
            continue
        total_weight += weight
        weighted_sum += score * weight

    if total_weight <= 0:
        return None
    return clamp(weighted_sum / total_weight, 0.0, 100.0)


@dataclass(frozen=True)
class CallQualityScore:
    """Quality score for one tick. None means unknown, never zero."""
    overall: Optional[float]
    audio: Optional[float]
    video: Optional[float]
    network: Optional[float]
    grade: Optional[QualityGrade]
    description: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_known(self) -> bool:
        return self.overall is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "audio": self.audio,
            "video": self.video,
            "network": self.network,
            "grade": self.grade.value if self.grade else None,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
        }


def _round(value: Optional[float]) -> Optional[float]:
    return round(value, 2) if value is not None else None


class ScoreAggregator:
    """Combines sub-scores via configurable weights."""

    def __init__(self, weights: Optional[QualityScoreWeights] = None):
        """
        Initialize score aggregator.

        Args:
            weights: Sub-score weights, validated before use

        Raises:
            ConfigurationError: If a weight is negative or non-numeric, or all are zero
        """
        self._weights = weights or QualityScoreWeights()
        self._weights.validate()

    @property
    def weights(self) -> QualityScoreWeights:
        return self._weights

    def aggregate(
        self,
        scores: MetricScores,
        timestamp: Optional[datetime] = None,
    ) -> CallQualityScore:
        """
        Build a quality score from normalized sub-scores.

        Args:
            scores: Sub-scores from the normalizer
            timestamp: Sample time, defaults to now

        Returns:
            Immutable quality score
        """
        w = self._weights

        overall = weighted_mean([
            (scores.packet_loss, w.packet_loss),
            (scores.jitter, w.jitter),
            (scores.rtt, w.rtt),
            (scores.mos, w.mos),
            (scores.bitrate_stability, w.bitrate_stability),
        ])

        audio = weighted_mean([
            (self._prefer(scores.audio_packet_loss, scores.packet_loss), w.packet_loss),
            (self._prefer(scores.audio_jitter, scores.jitter), w.jitter),
            (scores.rtt, w.rtt),
            (scores.mos, w.mos),
            (scores.bitrate_stability, w.bitrate_stability),
        ])

        video = weighted_mean(
            (getattr(scores, name), weight) for name, weight in VIDEO_WEIGHTS.items()
        )

        network = weighted_mean(
            (getattr(scores, name), weight) for name, weight in NETWORK_WEIGHTS.items()
        )

        # Grade is derived from the stored, rounded overall
        overall = _round(overall)
        grade = get_grade(overall) if overall is not None else None

        score = CallQualityScore(
            overall=overall,
            audio=_round(audio),
            video=_round(video),
            network=_round(network),
            grade=grade,
            description=describe(grade),
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        logger.debug(
            f"Quality score: overall={score.overall} grade={grade.value if grade else None}"
        )
        return score

    @staticmethod
    def _prefer(primary: Optional[float], fallback: Optional[float]) -> Optional[float]:
        return primary if primary is not None else fallback
