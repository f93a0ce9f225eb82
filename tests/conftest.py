"""
Test Configuration
==================

Pytest fixtures and test configuration for the receipt scanner.
"""

import numpy as np
import pytest

from receipt_scanner.models.signal import Signal
from receipt_scanner.models.state import SessionState, ScannerPhase


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    """Provide a controllable clock starting at 0 ms."""
    return FakeClock()


@pytest.fixture
def rng():
    """Provide a seeded random generator."""
    return np.random.default_rng(7)


@pytest.fixture
def healthy_signal():
    """Provide a signal that triggers no fault."""
    return Signal()


@pytest.fixture
def scanning_state():
    """Provide a SCANNING snapshot started at t=0."""
    return SessionState(phase=ScannerPhase.SCANNING, started_at=0.0)


@pytest.fixture
def sample_frame_payload():
    """Provide a typical camelCase frame-analysis payload."""
    return {
        "receiptInFrame": True,
        "direction": "down",
        "verticalSpeed": 0.6,
        "stability": 0.9,
        "brightness": 0.7,
        "glare": 0.04,
        "boundsConfidence": 0.88,
        "motion": {"dx": 0.01, "dy": 0.2, "rotation": 0.02},
    }


@pytest.fixture
def driver_factory(clock, rng):
    """
    Build ScanSessionDriver instances driven by the fake clock.

    Extra keyword arguments override the defaults.
    """
    from receipt_scanner.session import ScanSessionDriver, StaticPermissionProvider

    created = []

    def build(**kwargs):
        options = {
            "permission_provider": StaticPermissionProvider(granted=True),
            "clock": clock,
            "rng": rng,
        }
        options.update(kwargs)
        driver = ScanSessionDriver(**options)
        created.append(driver)
        return driver

    yield build

    for driver in created:
        driver.close()
