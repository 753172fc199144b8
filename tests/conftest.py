"""
Pytest configuration and fixtures for Steward tests.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path so we can import the steward package
sys.path.insert(0, str(Path(__file__).parent.parent))

from steward.config import RoutingConfig
from steward.types import (
    Classification,
    CognitiveState,
    Level,
    TaskType,
    TimeContext,
    UncertaintyLevel,
    UserProfile,
)


class FakeClock:
    """Manually advanced clock for TTL and window tests."""

    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config():
    """Provide the default routing config."""
    return RoutingConfig()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def afternoon():
    return TimeContext(hour=14)


@pytest.fixture
def late_night():
    return TimeContext(hour=23)


@pytest.fixture
def default_profile():
    return UserProfile()


@pytest.fixture
def cloud_profile():
    """Profile that explicitly prefers cloud processing."""
    return UserProfile(prefer_cloud_override=True)


@pytest.fixture
def neutral_state():
    return CognitiveState()


@pytest.fixture
def hyperfocus_state():
    return CognitiveState(
        capacity_level=Level.HIGH,
        task_alignment_level=Level.HIGH,
        hyperfocus_potential=True,
    )


@pytest.fixture
def complex_write():
    return Classification(
        type=TaskType.WRITE,
        complexity=Level.HIGH,
        uncertainty=UncertaintyLevel.MEDIUM,
    )


@pytest.fixture
def password_debug():
    return Classification(
        type=TaskType.DEBUG,
        complexity=Level.MEDIUM,
        keywords={"password", "login"},
    )


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "hypothesis: property-based tests"
    )
    config.addinivalue_line(
        "markers", "slow: tests that take >1s"
    )
