"""
Call quality session.

Owns one instance of every quality component for a single call and runs
the per-tick pipeline: normalize, aggregate, record history, analyze trend,
classify the network and advise on bandwidth. Each call gets its own
session; nothing is shared between sessions.
"""

import copy
import logging
import statistics
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from callquality.adaptation.advisor import BandwidthAdaptationAdvisor, BandwidthRecommendation
from callquality.core.config import BandwidthConstraints, Config, QualityScoreWeights
from callquality.core.sample import CallStatsSample, as_metric
from callquality.network.indicator import NetworkQualityClassifier, NetworkQualityIndicatorData
from callquality.quality.history import HistoryTracker, QualityTrend, TrendAnalyzer
from callquality.quality.normalizer import MetricNormalizer
from callquality.quality.scoring import CallQualityScore, QualityGrade, ScoreAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualitySessionUpdate:
    """Everything derived from one tick."""
    score: CallQualityScore
    trend: Optional[QualityTrend]
    network: NetworkQualityIndicatorData
    recommendation: BandwidthRecommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score.to_dict(),
            "trend": self.trend.to_dict() if self.trend else None,
            "network": self.network.to_dict(),
            "recommendation": self.recommendation.to_dict(),
        }


class CallQualitySession:
    """Quality scoring, classification and adaptation for one call."""

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize call quality session.

        Args:
            config: Session configuration, validated before use

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self._config = copy.deepcopy(config or Config()).validate()

        self._normalizer = self._build_normalizer(self._config)
        self._aggregator = ScoreAggregator(self._config.scoring.weights)
        self._history = HistoryTracker(self._config.history.capacity)
        self._trend_analyzer = TrendAnalyzer(self._config.history.trend_epsilon)
        self._classifier = self._build_classifier(self._config)
        self._advisor = BandwidthAdaptationAdvisor(self._config.adaptation)

        self._last_update: Optional[QualitySessionUpdate] = None
        self._last_bitrate: Optional[float] = None

        # Session statistics
        self._known_scores: List[float] = []
        self._unknown_ticks = 0
        self._grade_ticks: Dict[str, int] = {grade.value: 0 for grade in QualityGrade}

        # Callbacks
        self._on_update: List[Callable[[QualitySessionUpdate], None]] = []

    @property
    def config(self) -> Config:
        """A copy of the active configuration."""
        return copy.deepcopy(self._config)

    @property
    def history(self) -> HistoryTracker:
        return self._history

    @property
    def score(self) -> Optional[CallQualityScore]:
        return self._last_update.score if self._last_update else None

    @property
    def trend(self) -> Optional[QualityTrend]:
        return self._last_update.trend if self._last_update else None

    @property
    def network(self) -> Optional[NetworkQualityIndicatorData]:
        return self._last_update.network if self._last_update else None

    @property
    def recommendation(self) -> Optional[BandwidthRecommendation]:
        return self._last_update.recommendation if self._last_update else None

    def process(self, sample: CallStatsSample) -> QualitySessionUpdate:
        """
        Run one full pipeline pass for a tick.

        Args:
            sample: Statistics for this tick

        Returns:
            Score, trend, network indicator and bandwidth recommendation
        """
        score_input = sample.to_score_input(previous_bitrate=self._last_bitrate)
        bitrate = as_metric(sample.bitrate)
        if bitrate is not None:
            self._last_bitrate = bitrate

        scores = self._normalizer.normalize(score_input)
        score = self._aggregator.aggregate(scores, timestamp=sample.timestamp)

        self._history.push(score)
        trend = self._trend_analyzer.analyze(self._history.entries())

        network = self._classifier.classify(sample.to_network_input())
        recommendation = self._advisor.advise(sample.to_bandwidth_input(), score)

        self._record(score)

        update = QualitySessionUpdate(
            score=score,
            trend=trend,
            network=network,
            recommendation=recommendation,
        )
        self._last_update = update
        self._emit_update(update)
        return update

    # Configuration

    def update_config(self, config: Config) -> None:
        """
        Replace the whole configuration.

        The new configuration is validated first; on error the active one
        stays in effect. History is kept and only future ticks are affected.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        new_config = copy.deepcopy(config).validate()

        self._normalizer = self._build_normalizer(new_config)
        self._aggregator = ScoreAggregator(new_config.scoring.weights)
        self._history.resize(new_config.history.capacity)
        self._trend_analyzer = TrendAnalyzer(new_config.history.trend_epsilon)
        self._classifier = self._build_classifier(new_config)
        self._advisor.configure(new_config.adaptation)
        self._config = new_config
        logger.info("Call quality configuration updated")

    def set_weights(self, weights: QualityScoreWeights) -> None:
        config = copy.deepcopy(self._config)
        config.scoring.weights = weights
        self.update_config(config)

    def set_constraints(self, constraints: BandwidthConstraints) -> None:
        config = copy.deepcopy(self._config)
        config.adaptation.constraints = constraints
        self.update_config(config)

    def set_auto_adapt(self, enabled: bool) -> None:
        config = copy.deepcopy(self._config)
        config.adaptation.auto_adapt = enabled
        self.update_config(config)

    def reset(self) -> None:
        """Clear history and degradation state; configuration is kept."""
        self._history.clear()
        self._advisor.reset()
        self._last_update = None
        self._last_bitrate = None
        self._known_scores = []
        self._unknown_ticks = 0
        self._grade_ticks = {grade.value: 0 for grade in QualityGrade}
        logger.info("Call quality session reset")

    # Callbacks

    def on_update(self, callback: Callable[[QualitySessionUpdate], None]) -> None:
        """Register callback invoked after every tick."""
        self._on_update.append(callback)

    def _emit_update(self, update: QualitySessionUpdate) -> None:
        for callback in self._on_update:
            try:
                callback(update)
            except Exception as e:
                logger.error(f"Quality update callback error: {e}")

    # Analytics

    def _record(self, score: CallQualityScore) -> None:
        if score.overall is None:
            self._unknown_ticks += 1
            return
        self._known_scores.append(score.overall)
        self._grade_ticks[score.grade.value] += 1

    def get_summary(self) -> Dict[str, Any]:
        """Get quality summary for the session so far."""
        scores = self._known_scores
        current = self._last_update

        return {
            "current_score": current.score.overall if current else None,
            "current_grade": current.score.grade.value if current and current.score.grade else None,
            "current_level": current.network.level.value if current else "unknown",
            "trend": current.trend.to_dict() if current and current.trend else None,
            "quality_summary": {
                "average_score": statistics.mean(scores) if scores else None,
                "min_score": min(scores) if scores else None,
                "max_score": max(scores) if scores else None,
                "score_std_dev": statistics.stdev(scores) if len(scores) > 1 else None,
            },
            "ticks_by_grade": dict(self._grade_ticks),
            "unknown_ticks": self._unknown_ticks,
            "recent_degradation_events": self._advisor.recent_degradation_events(),
        }

    @staticmethod
    def _build_normalizer(config: Config) -> MetricNormalizer:
        return MetricNormalizer(
            thresholds=config.scoring.thresholds,
            bitrate_sensitivity=config.scoring.bitrate_sensitivity,
        )

    @staticmethod
    def _build_classifier(config: Config) -> NetworkQualityClassifier:
        return NetworkQualityClassifier(
            thresholds=config.indicator.thresholds,
            colors=config.indicator.colors,
            estimate_bandwidth=config.indicator.estimate_bandwidth,
        )
