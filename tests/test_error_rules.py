"""
Error Rule Tests
================

Tests for prioritized fault evaluation.
"""

import pytest

from receipt_scanner.agent.error_rules import (
    ErrorRuleEngine,
    RuleThresholds,
    evaluate_scanner_error,
)
from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.signal import Direction, Signal


def signal(**overrides):
    return Signal().model_copy(update=overrides)


class TestErrorRuleEngine:
    """Tests for ErrorRuleEngine."""

    def test_thresholds_defaults(self):
        """Verify default thresholds are set."""
        thresholds = RuleThresholds()
        assert thresholds.min_bounds_confidence == 0.45
        assert thresholds.max_vertical_speed == 1.35
        assert thresholds.min_stability == 0.45
        assert thresholds.min_brightness == 0.22
        assert thresholds.max_glare == 0.78

    def test_healthy_signal(self, healthy_signal):
        """Default signal yields no fault."""
        assert evaluate_scanner_error(healthy_signal) is None

    def test_none_signal(self):
        assert evaluate_scanner_error(None) is None

    @pytest.mark.parametrize("overrides, expected", [
        ({"receipt_in_frame": False}, ErrorCode.OUT_OF_FRAME),
        ({"bounds_confidence": 0.3}, ErrorCode.OUT_OF_FRAME),
        ({"direction": Direction.UP}, ErrorCode.WRONG_DIRECTION),
        ({"direction": Direction.LEFT}, ErrorCode.WRONG_DIRECTION),
        ({"vertical_speed": 1.4}, ErrorCode.TOO_FAST),
        ({"stability": 0.2}, ErrorCode.SHAKY),
        ({"brightness": 0.1}, ErrorCode.TOO_DARK),
        ({"glare": 0.9}, ErrorCode.GLARE),
    ])
    def test_single_fault(self, overrides, expected):
        """Each rule fires on its own condition."""
        assert evaluate_scanner_error(signal(**overrides)) == expected

    def test_boundaries_are_strict(self):
        """Values exactly at a threshold do not fire."""
        at_limits = signal(
            bounds_confidence=0.45,
            vertical_speed=1.35,
            stability=0.45,
            brightness=0.22,
            glare=0.78,
        )
        assert evaluate_scanner_error(at_limits) is None

    def test_low_confidence_dominates(self):
        """Low bounds confidence yields OUT_OF_FRAME regardless of other fields."""
        everything_wrong = signal(
            bounds_confidence=0.1,
            direction=Direction.UP,
            vertical_speed=3.0,
            stability=0.0,
            brightness=0.0,
            glare=1.0,
        )
        assert evaluate_scanner_error(everything_wrong) == ErrorCode.OUT_OF_FRAME

    def test_out_of_frame_beats_too_dark(self):
        assert evaluate_scanner_error(
            signal(receipt_in_frame=False, brightness=0.05)
        ) == ErrorCode.OUT_OF_FRAME

    def test_priority_order(self):
        """Faults are reported in rule order."""
        assert evaluate_scanner_error(
            signal(vertical_speed=2.0, stability=0.1, glare=0.95)
        ) == ErrorCode.TOO_FAST
        assert evaluate_scanner_error(
            signal(stability=0.1, brightness=0.1)
        ) == ErrorCode.SHAKY

    def test_motion_only_codes_never_reported(self):
        """Rotation and proximity are left to the debouncer."""
        assert evaluate_scanner_error(signal(rotation=0.9, receipt_too_close=True)) is None

    def test_custom_thresholds(self):
        """Engine honors configured thresholds."""
        engine = ErrorRuleEngine(RuleThresholds(max_glare=0.5))
        assert engine.evaluate(signal(glare=0.6)) == ErrorCode.GLARE
        assert evaluate_scanner_error(signal(glare=0.6)) is None
