"""
Tests for callquality.quality.session module.
"""

import numpy as np
import pytest

from callquality.adaptation.advisor import BandwidthAction
from callquality.core.config import BandwidthConstraints, Config, QualityScoreWeights
from callquality.core.exceptions import ConfigurationError
from callquality.network.indicator import NetworkQualityLevel
from callquality.quality.history import TrendDirection
from callquality.quality.scoring import QualityGrade
from callquality.quality.session import CallQualitySession


class TestCallQualitySession:
    """Tests for CallQualitySession class."""

    def test_initial_state(self):
        """Test a new session has no results yet."""
        session = CallQualitySession()
        assert session.score is None
        assert session.trend is None
        assert session.network is None
        assert session.recommendation is None
        assert len(session.history) == 0

    def test_invalid_config_rejected(self):
        """Test construction validates configuration."""
        config = Config()
        config.history.capacity = 0
        with pytest.raises(ConfigurationError):
            CallQualitySession(config)

    def test_process_clean_call(self, make_sample):
        """Test a clean tick produces a full update."""
        session = CallQualitySession()
        update = session.process(make_sample(
            packet_loss=0, jitter=5, rtt=30, mos=4.5, bitrate=500, previous_bitrate=500,
        ))

        assert update.score.grade == QualityGrade.A
        assert update.network.level == NetworkQualityLevel.EXCELLENT
        assert update.recommendation.action == BandwidthAction.MAINTAIN
        assert update.trend is None
        assert session.score is update.score
        assert len(session.history) == 1

    def test_numpy_metrics(self, make_sample):
        """Test numpy integer metrics score like plain numbers."""
        session = CallQualitySession()
        update = session.process(make_sample(
            packet_loss=np.int64(0), jitter=np.int64(5), rtt=np.int64(30),
        ))

        assert update.score.overall == pytest.approx(100)
        assert update.score.grade == QualityGrade.A
        assert update.network.level == NetworkQualityLevel.EXCELLENT

    def test_empty_tick_is_unknown(self, make_sample):
        """Test a tick without metrics is unknown."""
        session = CallQualitySession()
        update = session.process(make_sample())

        assert update.score.overall is None
        assert update.network.level == NetworkQualityLevel.UNKNOWN
        assert update.recommendation.action == BandwidthAction.MAINTAIN

    def test_previous_bitrate_from_last_tick(self, make_sample):
        """Test bitrate stability compares against the previous tick."""
        session = CallQualitySession()
        session.process(make_sample(bitrate=500))
        update = session.process(make_sample(bitrate=450))

        assert update.score.overall == pytest.approx(90)

    def test_trend_builds_up(self, make_sample):
        """Test rising quality gives an improving trend."""
        session = CallQualitySession()
        for mos in (2.0, 2.5, 3.0, 3.5, 4.0):
            update = session.process(make_sample(mos=mos))

        assert update.trend.direction == TrendDirection.IMPROVING
        assert update.trend.sample_count == 5

    def test_history_capacity(self, make_sample):
        """Test history is bounded by configuration."""
        config = Config()
        config.history.capacity = 3
        session = CallQualitySession(config)
        for _ in range(5):
            session.process(make_sample(mos=4))
        assert len(session.history) == 3

    def test_sessions_independent(self, make_sample):
        """Test sessions share no state."""
        first = CallQualitySession()
        second = CallQualitySession()
        first.process(make_sample(mos=4))

        assert len(first.history) == 1
        assert len(second.history) == 0
        assert second.score is None

    def test_config_is_copied(self):
        """Test caller changes do not leak into the session."""
        config = Config()
        session = CallQualitySession(config)
        config.history.capacity = 50
        session.config.history.capacity = 60

        assert session.config.history.capacity == 10

    def test_on_update_callback(self, make_sample):
        """Test callbacks receive every update."""
        session = CallQualitySession()
        updates = []
        session.on_update(updates.append)

        update = session.process(make_sample(mos=4))

        assert updates == [update]

    def test_callback_error_does_not_propagate(self, make_sample):
        """Test a failing callback does not break processing."""
        session = CallQualitySession()
        received = []

        def broken(update):
            raise RuntimeError("boom")

        session.on_update(broken)
        session.on_update(received.append)

        session.process(make_sample(mos=4))

        assert len(received) == 1

    def test_update_config(self, make_sample):
        """Test new configuration applies to future ticks."""
        session = CallQualitySession()
        session.process(make_sample(mos=4))

        config = Config()
        config.history.capacity = 4
        config.adaptation.auto_adapt = True
        session.update_config(config)

        assert session.history.capacity == 4
        assert len(session.history) == 1
        update = session.process(make_sample(mos=4, available_bitrate=3000, bitrate=800))
        assert update.recommendation.auto_apply is True

    def test_update_config_atomic(self):
        """Test an invalid configuration leaves the active one in place."""
        session = CallQualitySession()
        config = Config()
        config.history.capacity = 4
        config.adaptation.sensitivity = 3

        with pytest.raises(ConfigurationError):
            session.update_config(config)

        assert session.config.history.capacity == 10
        assert session.history.capacity == 10

    def test_set_weights(self, make_sample):
        """Test replacing weights."""
        session = CallQualitySession()
        session.set_weights(QualityScoreWeights(packet_loss=1, jitter=0, rtt=0, mos=0, bitrate_stability=0))

        update = session.process(make_sample(packet_loss=2, mos=5))

        assert update.score.overall == pytest.approx(60)

    def test_set_weights_invalid(self):
        """Test invalid weights are rejected."""
        session = CallQualitySession()
        with pytest.raises(ConfigurationError):
            session.set_weights(QualityScoreWeights(0, 0, 0, 0, 0))
        assert session.config.scoring.weights.mos == 0.25

    def test_set_constraints(self):
        session = CallQualitySession()
        session.set_constraints(BandwidthConstraints(min_video_bitrate=300))
        assert session.config.adaptation.constraints.min_video_bitrate == 300

    def test_set_constraints_invalid(self):
        """Test min above max is rejected."""
        session = CallQualitySession()
        with pytest.raises(ConfigurationError):
            session.set_constraints(BandwidthConstraints(min_video_bitrate=5000))

    def test_set_auto_adapt(self):
        session = CallQualitySession()
        session.set_auto_adapt(True)
        assert session.config.adaptation.auto_adapt is True

    def test_reset(self, make_sample):
        """Test reset clears state but keeps configuration."""
        config = Config()
        config.history.capacity = 7
        session = CallQualitySession(config)
        session.process(make_sample(mos=4, bitrate=500))

        session.reset()

        assert session.score is None
        assert len(session.history) == 0
        assert session.config.history.capacity == 7
        assert session.get_summary()["unknown_ticks"] == 0

        # Bitrate stability starts fresh after a reset
        update = session.process(make_sample(bitrate=100))
        assert update.score.overall == pytest.approx(100)

    def test_get_summary(self, make_sample):
        """Test session summary statistics."""
        session = CallQualitySession()
        session.process(make_sample(mos=5))
        session.process(make_sample(mos=3))
        session.process(make_sample())

        summary = session.get_summary()

        assert summary["current_score"] is None
        assert summary["current_grade"] is None
        assert summary["current_level"] == "unknown"
        assert summary["quality_summary"]["average_score"] == pytest.approx(75)
        assert summary["quality_summary"]["min_score"] == pytest.approx(50)
        assert summary["quality_summary"]["max_score"] == pytest.approx(100)
        assert summary["quality_summary"]["score_std_dev"] is not None
        assert summary["ticks_by_grade"]["A"] == 1
        assert summary["ticks_by_grade"]["D"] == 1
        assert summary["unknown_ticks"] == 1

    def test_get_summary_empty(self):
        """Test summary before any tick."""
        summary = CallQualitySession().get_summary()
        assert summary["current_score"] is None
        assert summary["trend"] is None
        assert summary["quality_summary"]["average_score"] is None
        assert summary["recent_degradation_events"] == 0

    def test_update_to_dict(self, make_sample):
        """Test converting an update to dict."""
        data = CallQualitySession().process(make_sample(mos=4)).to_dict()
        assert set(data) == {"score", "trend", "network", "recommendation"}
        assert data["trend"] is None
