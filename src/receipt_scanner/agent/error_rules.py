"""
Error Rules
===========

Priority-ordered scan-quality fault detection.

Conditions are not mutually exclusive (a dark receipt can also be out of
frame), so the rules are evaluated in a fixed order and the first match wins.

Rule Order:
    1. receipt_in_frame is False OR bounds_confidence < 0.45 → OUT_OF_FRAME
    2. direction set and not DOWN                            → WRONG_DIRECTION
    3. vertical_speed > 1.35                                 → TOO_FAST
    4. stability < 0.45                                      → SHAKY
    5. brightness < 0.22                                     → TOO_DARK
    6. glare > 0.78                                          → GLARE
    7. otherwise                                             → None

The engine performs no clamping; it expects a normalized Signal.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.signal import Direction, Signal


logger = logging.getLogger(__name__)


@dataclass
class RuleThresholds:
    """
    Thresholds for fault rules.

    Defaults must stay exact to keep behavior stable across releases.
    """

    min_bounds_confidence: float = 0.45
    max_vertical_speed: float = 1.35
    min_stability: float = 0.45
    min_brightness: float = 0.22
    max_glare: float = 0.78


class ErrorRuleEngine:
    """
    Pure, ordered Signal → ErrorCode evaluation.

    Example:
        engine = ErrorRuleEngine()
        code = engine.evaluate(signal)
    """

    def __init__(self, thresholds: Optional[RuleThresholds] = None) -> None:
        self.thresholds = thresholds or RuleThresholds()
        self._rules: List[Tuple[ErrorCode, Callable[[Signal], bool]]] = [
            (ErrorCode.OUT_OF_FRAME, self._out_of_frame),
            (ErrorCode.WRONG_DIRECTION, self._wrong_direction),
            (ErrorCode.TOO_FAST, self._too_fast),
            (ErrorCode.SHAKY, self._shaky),
            (ErrorCode.TOO_DARK, self._too_dark),
            (ErrorCode.GLARE, self._glare),
        ]

    def evaluate(self, signal: Optional[Signal]) -> Optional[ErrorCode]:
        """
        Return the highest-priority fault for a signal.

        Args:
            signal: Normalized signal (None yields None)

        Returns:
            First matching ErrorCode, or None when the signal is healthy
        """
        if signal is None:
            return None
        for code, rule in self._rules:
            if rule(signal):
                return code
        return None

    def _out_of_frame(self, s: Signal) -> bool:
        return s.receipt_in_frame is False or s.bounds_confidence < self.thresholds.min_bounds_confidence

    def _wrong_direction(self, s: Signal) -> bool:
        return s.direction is not None and s.direction != Direction.DOWN

    def _too_fast(self, s: Signal) -> bool:
        return s.vertical_speed > self.thresholds.max_vertical_speed

    def _shaky(self, s: Signal) -> bool:
        return s.stability < self.thresholds.min_stability

    def _too_dark(self, s: Signal) -> bool:
        return s.brightness < self.thresholds.min_brightness

    def _glare(self, s: Signal) -> bool:
        return s.glare > self.thresholds.max_glare


_default_engine = ErrorRuleEngine()


def evaluate_scanner_error(signal: Optional[Signal]) -> Optional[ErrorCode]:
    """Evaluate a signal with default thresholds."""
    return _default_engine.evaluate(signal)
