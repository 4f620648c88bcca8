"""
Pytest configuration and shared fixtures for callquality tests.
"""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from callquality.core.sample import (  # noqa: E402
    BandwidthAdaptationInput,
    CallStatsSample,
    QualityScoreInput,
    VideoResolution,
)


# ============================================================================
# Temporary Directory Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text("""
version: 1
scoring:
  weights:
    packet_loss: 0.4
    jitter: 0.1
    rtt: 0.2
    mos: 0.2
    bitrate_stability: 0.1
history:
  capacity: 20
adaptation:
  auto_adapt: true
  constraints:
    min_video_bitrate: 150
    max_video_bitrate: 2000
""")
    return config_path


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Return a sample configuration dictionary."""
    return {
        "version": 1,
        "scoring": {
            "weights": {
                "packet_loss": 0.3,
                "jitter": 0.2,
                "rtt": 0.2,
                "mos": 0.2,
                "bitrate_stability": 0.1,
            },
            "bitrate_sensitivity": 0.5,
        },
        "history": {
            "capacity": 15,
            "trend_epsilon": 1.0,
        },
        "indicator": {
            "thresholds": {"rtt": [40, 80, 160, 320]},
            "colors": {"excellent": "#00ff00"},
        },
        "adaptation": {
            "sensitivity": 0.8,
            "auto_adapt": True,
            "constraints": {
                "min_video_bitrate": 200,
                "max_video_bitrate": 3000,
                "min_resolution": {"width": 640, "height": 360, "label": "360p"},
            },
        },
    }


# ============================================================================
# Sample Fixtures
# ============================================================================

@pytest.fixture
def excellent_input() -> QualityScoreInput:
    """Metrics of a clean call."""
    return QualityScoreInput(
        packet_loss=0,
        jitter=5,
        rtt=30,
        mos=4.5,
        bitrate=500,
        previous_bitrate=500,
    )


@pytest.fixture
def degraded_input() -> QualityScoreInput:
    """Metrics of a badly degraded call."""
    return QualityScoreInput(
        packet_loss=8,
        jitter=90,
        rtt=350,
        mos=2.0,
    )


@pytest.fixture
def hd_resolution() -> VideoResolution:
    return VideoResolution(1280, 720, "720p")


@pytest.fixture
def healthy_bandwidth_input() -> BandwidthAdaptationInput:
    """Bandwidth state with plenty of headroom."""
    return BandwidthAdaptationInput(
        available_bitrate=3000,
        current_bitrate=800,
        packet_loss=0.2,
        rtt=40,
        jitter=5,
        current_resolution=VideoResolution(854, 480, "480p"),
        current_framerate=30,
    )


@pytest.fixture
def make_sample():
    """Factory for call stats samples."""
    def _make(**kwargs) -> CallStatsSample:
        return CallStatsSample(**kwargs)
    return _make

