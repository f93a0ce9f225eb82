"""
Motion Warning Debouncer
========================

Secondary, time-debounced detector for motion faults.

Single noisy motion samples must not flash a banner. A motion condition is
promoted to a warning only after it has held CONTINUOUSLY for the
persistence threshold; the timer resets the instant the condition drops.

Conditions:
    TOO_FAST:  vertical_speed > 1.35
    DRIFTING:  |rotation| > 0.18
    TOO_CLOSE: receipt_too_close is True

Priority (when several are promoted on the same tick):
    TOO_CLOSE > DRIFTING > TOO_FAST

All timing uses timestamps passed in by the caller (milliseconds).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.signal import Signal


logger = logging.getLogger(__name__)


MOTION_PRIORITY = (
    ErrorCode.TOO_CLOSE,
    ErrorCode.DRIFTING,
    ErrorCode.TOO_FAST,
)


@dataclass
class MotionWarningThresholds:
    """Thresholds for debounced motion warnings."""

    persistence_ms: float = 400.0
    too_fast_speed: float = 1.35
    drifting_rotation: float = 0.18


class MotionWarningDebouncer:
    """
    Per-condition persistence tracker.

    Attributes:
        thresholds: Condition thresholds and persistence window

    Example:
        debouncer = MotionWarningDebouncer()
        debouncer.update(signal, now=0)      # None, timer starts
        debouncer.update(signal, now=400)    # ErrorCode.TOO_FAST
    """

    def __init__(self, thresholds: Optional[MotionWarningThresholds] = None) -> None:
        self.thresholds = thresholds or MotionWarningThresholds()
        if self.thresholds.persistence_ms < 0:
            raise ValueError("persistence_ms must be >= 0")

        self._timers: Dict[ErrorCode, Optional[float]] = {
            code: None for code in MOTION_PRIORITY
        }

    def conditions(self, signal: Optional[Signal]) -> Dict[ErrorCode, bool]:
        """Evaluate each raw motion condition for one sample."""
        if signal is None:
            return {code: False for code in MOTION_PRIORITY}
        th = self.thresholds
        return {
            ErrorCode.TOO_CLOSE: signal.receipt_too_close is True,
            ErrorCode.DRIFTING: abs(signal.rotation) > th.drifting_rotation,
            ErrorCode.TOO_FAST: signal.vertical_speed > th.too_fast_speed,
        }

    def update(self, signal: Optional[Signal], now: float) -> Optional[ErrorCode]:
        """
        Record one sample and return the promoted warning, if any.

        Args:
            signal: Current canonical signal
            now: Sample timestamp in milliseconds

        Returns:
            Highest-priority condition that has persisted long enough
        """
        active = self.conditions(signal)

        for code in MOTION_PRIORITY:
            if active[code]:
                if self._timers[code] is None:
                    self._timers[code] = now
            else:
                self._timers[code] = None

        for code in MOTION_PRIORITY:
            started_at = self._timers[code]
            if started_at is not None and now - started_at >= self.thresholds.persistence_ms:
                return code

        return None

    def reset(self) -> None:
        """Clear all persistence timers."""
        for code in MOTION_PRIORITY:
            self._timers[code] = None

    @property
    def timers(self) -> Dict[ErrorCode, Optional[float]]:
        """Copy of the first-observed timestamps."""
        return dict(self._timers)
