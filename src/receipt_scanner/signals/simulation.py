"""
Simulation Signal Generator
===========================

Synthetic scan signals for demo mode and tests.

Used only when no real signal source has delivered data for the session.
The generator simulates:
    - A healthy baseline with small bounded jitter so the scan feels alive
    - Optional random fault injection (MOCK_ERRORS scenario)
    - A caller-forced fault that always wins over scenario randomness

Randomness comes from a numpy Generator so tests can seed it and assert
exact injected-fault sequences.

Healthy Jitter Ranges:
    vertical_speed ∈ [0.45, 0.80]
    stability      ∈ [0.82, 0.94]
    brightness     ∈ [0.55, 0.80]
    glare          ∈ [0.04, 0.12]
"""

import logging
from enum import Enum
from typing import Dict, Optional, Sequence

import numpy as np

from receipt_scanner.models.error_codes import ErrorCode
from receipt_scanner.models.signal import DEFAULT_SIGNAL, Direction, Signal
from receipt_scanner.signals.merger import merge_signals


logger = logging.getLogger(__name__)


class ScannerSimulationScenario(str, Enum):
    """
    Demo scenarios.

    Attributes:
        NO_ERRORS: Always healthy
        MOCK_ERRORS: Healthy baseline with random fault injection
    """

    NO_ERRORS = "NO_ERRORS"
    MOCK_ERRORS = "MOCK_ERRORS"


# One deterministic signature per fault code
ERROR_SIGNATURES: Dict[ErrorCode, dict] = {
    ErrorCode.WRONG_DIRECTION: {"direction": Direction.UP},
    ErrorCode.TOO_FAST: {"vertical_speed": 1.9},
    ErrorCode.SHAKY: {"stability": 0.25},
    ErrorCode.OUT_OF_FRAME: {"receipt_in_frame": False, "bounds_confidence": 0.25},
    ErrorCode.TOO_DARK: {"brightness": 0.15},
    ErrorCode.GLARE: {"glare": 0.91},
    ErrorCode.DRIFTING: {"rotation": 0.35},
    ErrorCode.TOO_CLOSE: {"receipt_too_close": True},
}

# Faults the rule engine reports on a single tick
DEMO_ERROR_POOL: Sequence[ErrorCode] = (
    ErrorCode.WRONG_DIRECTION,
    ErrorCode.TOO_FAST,
    ErrorCode.SHAKY,
    ErrorCode.OUT_OF_FRAME,
    ErrorCode.TOO_DARK,
    ErrorCode.GLARE,
)


def signals_for_error_code(code: Optional[ErrorCode]) -> dict:
    """Signal overrides that reproduce a fault code."""
    if code is None:
        return {}
    return dict(ERROR_SIGNATURES.get(code, {}))


class SimulationSignalGenerator:
    """
    Seedable synthetic signal producer.

    Attributes:
        scenario: Active demo scenario
        error_probability: Per-tick injection probability (MOCK_ERRORS)
        injection_window: Open progress interval where injection is allowed

    Example:
        generator = SimulationSignalGenerator(
            scenario=ScannerSimulationScenario.MOCK_ERRORS,
            rng=np.random.default_rng(7),
        )
        signal = generator.generate(is_scanning=True, progress=40.0)
    """

    def __init__(
        self,
        scenario: ScannerSimulationScenario = ScannerSimulationScenario.NO_ERRORS,
        error_probability: float = 0.055,
        injection_window: tuple = (8.0, 95.0),
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        """
        Initialize simulation generator.

        Args:
            scenario: Demo scenario
            error_probability: Injection probability in [0, 1]
            injection_window: (low, high) progress bounds, both exclusive
            rng: Random generator (unseeded default if None)
        """
        if not 0.0 <= error_probability <= 1.0:
            raise ValueError("error_probability must be in [0, 1]")

        self.scenario = ScannerSimulationScenario(scenario)
        self.error_probability = error_probability
        self.injection_window = injection_window
        self.rng = rng if rng is not None else np.random.default_rng()
        self._injected_count: int = 0

        logger.info(
            f"SimulationSignalGenerator initialized: scenario={self.scenario.value}, "
            f"p={error_probability}"
        )

    def healthy(self) -> Signal:
        """Healthy baseline with bounded jitter."""
        return DEFAULT_SIGNAL.model_copy(update={
            "vertical_speed": 0.45 + self.rng.random() * 0.35,
            "stability": 0.82 + self.rng.random() * 0.12,
            "brightness": 0.55 + self.rng.random() * 0.25,
            "glare": 0.04 + self.rng.random() * 0.08,
        })

    def generate(
        self,
        is_scanning: bool,
        progress: float,
        forced_error: Optional[ErrorCode] = None,
    ) -> Signal:
        """
        Produce the signal for one tick.

        Args:
            is_scanning: Whether the session is SCANNING
            progress: Current progress percent
            forced_error: Fault to reproduce regardless of scenario

        Returns:
            Canonical Signal
        """
        if not is_scanning:
            return DEFAULT_SIGNAL

        healthy = self.healthy()

        if forced_error is not None:
            return merge_signals(healthy, signals_for_error_code(forced_error))

        if self.scenario == ScannerSimulationScenario.NO_ERRORS:
            return healthy

        low, high = self.injection_window
        if not low < progress < high:
            return healthy

        if self.rng.random() >= self.error_probability:
            return healthy

        code = DEMO_ERROR_POOL[int(self.rng.integers(len(DEMO_ERROR_POOL)))]
        self._injected_count += 1
        logger.debug(f"Simulator injected {code.value} at progress={progress:.1f}")
        return merge_signals(healthy, signals_for_error_code(code))

    @property
    def injected_count(self) -> int:
        """Number of randomly injected faults."""
        return self._injected_count
