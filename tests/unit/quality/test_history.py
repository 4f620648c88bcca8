"""
Tests for callquality.quality.history module.
"""

import pytest

from callquality.core.exceptions import ConfigurationError
from callquality.quality.history import (
    HistoryTracker,
    QualityTrend,
    TrendAnalyzer,
    TrendDirection,
)
from callquality.quality.scoring import CallQualityScore, describe, get_grade


def make_score(overall):
    grade = get_grade(overall) if overall is not None else None
    return CallQualityScore(
        overall=overall,
        audio=None,
        video=None,
        network=None,
        grade=grade,
        description=describe(grade),
    )


class TestHistoryTracker:
    """Tests for HistoryTracker class."""

    def test_push_and_entries(self):
        """Test entries are returned oldest first."""
        tracker = HistoryTracker(capacity=5)
        for value in (10, 20, 30):
            tracker.push(make_score(value))

        assert [e.overall for e in tracker.entries()] == [10, 20, 30]
        assert tracker.latest().overall == 30
        assert len(tracker) == 3

    def test_evicts_oldest(self):
        """Test capacity bounds the window."""
        tracker = HistoryTracker(capacity=3)
        for value in range(6):
            tracker.push(make_score(value))

        assert len(tracker) == 3
        assert [e.overall for e in tracker.entries()] == [3, 4, 5]

    def test_empty(self):
        """Test empty tracker."""
        tracker = HistoryTracker()
        assert tracker.capacity == 10
        assert tracker.entries() == []
        assert tracker.latest() is None

    def test_invalid_capacity(self):
        """Test capacity must be positive."""
        with pytest.raises(ValueError):
            HistoryTracker(capacity=0)

    def test_resize_keeps_newest(self):
        """Test shrinking keeps the most recent entries."""
        tracker = HistoryTracker(capacity=5)
        for value in range(5):
            tracker.push(make_score(value))

        tracker.resize(2)

        assert tracker.capacity == 2
        assert [e.overall for e in tracker.entries()] == [3, 4]

    def test_resize_grow(self):
        """Test growing keeps every entry."""
        tracker = HistoryTracker(capacity=2)
        tracker.push(make_score(1))
        tracker.push(make_score(2))

        tracker.resize(4)
        tracker.push(make_score(3))

        assert [e.overall for e in tracker.entries()] == [1, 2, 3]

    def test_clear(self):
        """Test clearing history."""
        tracker = HistoryTracker()
        tracker.push(make_score(50))
        tracker.clear()
        assert len(tracker) == 0


class TestTrendAnalyzer:
    """Tests for TrendAnalyzer class."""

    def test_no_trend_without_history(self):
        """Test fewer than two scores gives no trend."""
        analyzer = TrendAnalyzer()
        assert analyzer.analyze([]) is None
        assert analyzer.analyze([make_score(80)]) is None

    def test_identical_scores_stable(self):
        """Test two identical scores are stable."""
        trend = TrendAnalyzer().analyze([make_score(70), make_score(70)])

        assert trend.direction == TrendDirection.STABLE
        assert trend.rate == pytest.approx(0, abs=1e-6)
        assert 0 <= trend.confidence <= 1
        assert trend.sample_count == 2

    def test_two_samples_low_confidence(self):
        """Test two samples stay low confidence even on a perfect fit."""
        trend = TrendAnalyzer().analyze([make_score(70), make_score(70)])
        assert trend.confidence < 0.2

    @pytest.mark.parametrize("epsilon", [-0.1, float("nan"), "0.5", True])
    def test_invalid_epsilon_rejected(self, epsilon):
        """Test epsilon must be a non-negative number."""
        with pytest.raises(ConfigurationError):
            TrendAnalyzer(epsilon=epsilon)

    def test_steady_improvement(self):
        """Test ten scores rising by two each sample."""
        entries = [make_score(50 + 2 * i) for i in range(10)]
        trend = TrendAnalyzer().analyze(entries)

        assert trend.direction == TrendDirection.IMPROVING
        assert trend.rate > 0
        assert trend.rate == pytest.approx(2.0, abs=0.01)
        assert trend.confidence > 0.7

    def test_steady_degradation(self):
        """Test falling scores degrade."""
        entries = [make_score(90 - 5 * i) for i in range(6)]
        trend = TrendAnalyzer().analyze(entries)

        assert trend.direction == TrendDirection.DEGRADING
        assert trend.rate < 0

    def test_small_slope_is_stable(self):
        """Test slope within epsilon is stable."""
        entries = [make_score(70 + 0.2 * i) for i in range(5)]
        trend = TrendAnalyzer(epsilon=0.5).analyze(entries)
        assert trend.direction == TrendDirection.STABLE

    def test_unknown_scores_skipped(self):
        """Test unknown scores do not count as samples."""
        entries = [make_score(60), make_score(None), make_score(None)]
        assert TrendAnalyzer().analyze(entries) is None

        entries.append(make_score(64))
        trend = TrendAnalyzer().analyze(entries)
        assert trend.sample_count == 2
        assert trend.direction == TrendDirection.IMPROVING

    def test_scatter_lowers_confidence(self):
        """Test noisy history is less confident than a clean line."""
        clean = [make_score(50 + 2 * i) for i in range(10)]
        noisy = [make_score(50 + 2 * i + (15 if i % 2 else -15)) for i in range(10)]

        analyzer = TrendAnalyzer()
        assert analyzer.analyze(noisy).confidence < analyzer.analyze(clean).confidence

    def test_short_window_lowers_confidence(self):
        """Test few samples are less confident than a full window."""
        analyzer = TrendAnalyzer()
        short = analyzer.analyze([make_score(50), make_score(52), make_score(54)])
        full = analyzer.analyze([make_score(50 + 2 * i) for i in range(10)])
        assert short.confidence < full.confidence

    def test_rate_clamped(self):
        """Test rate stays within -100..100."""
        trend = TrendAnalyzer().analyze([make_score(0), make_score(100)])
        assert -100 <= trend.rate <= 100

    def test_to_dict(self):
        """Test converting trend to dict."""
        trend = QualityTrend(TrendDirection.IMPROVING, 1.5, 0.8, 5)
        data = trend.to_dict()
        assert data["direction"] == "improving"
        assert data["sample_count"] == 5
